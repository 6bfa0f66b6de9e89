from datetime import date
from pathlib import Path

import pytest

from postpress.content import (
    Post,
    extract_frontmatter,
    format_front_matter,
    load_posts,
    new_post,
    parse_post,
    sort_posts,
)
from postpress.errors import ParseError, ReadError, WriteError

HELLO = """---
title: "Hello World"
date: 2026-01-15
summary: "My first post."
---

This is my **first** post.

- one
- two

[Link](https://example.com)
"""


def write_post(directory: Path, name: str, title: str, day: str, draft: bool = False) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(
        f'---\ntitle: "{title}"\ndate: {day}\ndraft: {str(draft).lower()}\n---\n\nBody of {title}.\n',
        encoding="utf-8",
    )
    return path


def test_parse_post(tmp_path):
    path = tmp_path / "2026-01-15-hello-world.md"
    path.write_text(HELLO, encoding="utf-8")

    post = parse_post(path)
    assert post.title == "Hello World"
    assert post.date == date(2026, 1, 15)
    assert post.summary == "My first post."
    assert post.draft is False
    assert post.slug == "2026-01-15-hello-world"
    assert post.url == "/posts/2026-01-15-hello-world/"
    assert post.path == path
    assert "<strong>first</strong>" in post.html
    assert "<li>one</li>" in post.html
    assert '<a href="https://example.com">Link</a>' in post.html


def test_parse_post_defaults(tmp_path):
    path = tmp_path / "minimal.md"
    path.write_text("---\ntitle: Minimal\ndate: '2026-02-01'\n---\nHi\n", encoding="utf-8")
    post = parse_post(path)
    assert post.summary == ""
    assert post.draft is False
    assert post.date == date(2026, 2, 1)


def test_parse_post_renders_code_and_headings(tmp_path):
    path = tmp_path / "code.md"
    path.write_text(
        "---\ntitle: Code\ndate: 2026-01-01\n---\n\n"
        "## Setup Steps\n\n## Setup Steps\n\n"
        "```python\nprint('hi')\n```\n\n"
        "```\n<raw> & text\n```\n",
        encoding="utf-8",
    )
    html = parse_post(path).html
    assert '<h2 id="setup-steps">Setup Steps</h2>' in html
    assert '<h2 id="setup-steps-1">Setup Steps</h2>' in html
    assert 'class="highlight"' in html
    assert "<pre><code>&lt;raw&gt; &amp; text\n</code></pre>" in html


@pytest.mark.parametrize(
    "text, message",
    [
        ("No front matter here.\n", "no front matter"),
        ("---\ntitle: x\n", "no front matter"),
        ("---\ntitle: [oops\n---\nbody\n", "invalid front matter"),
        ("---\n- a\n- b\n---\nbody\n", "must be a mapping"),
        ("---\ndate: 2026-01-15\n---\nbody\n", "'title'"),
        ("---\ntitle: T\n---\nbody\n", "'date'"),
        ("---\ntitle: T\ndate: 15/01/2026\n---\nbody\n", "YYYY-MM-DD"),
        ("---\ntitle: T\ndate: '2026-02-30'\n---\nbody\n", "not a valid date"),
        ("---\ntitle: T\ndate: 2026-02-30\n---\nbody\n", "invalid front matter"),
        ("---\ntitle: T\ndate: 2026-01-15 10:30:00\n---\nbody\n", "without a time"),
        ("---\ntitle: T\ndate: 2026-01-15\ndraft: maybe\n---\nbody\n", "'draft'"),
    ],
)
def test_parse_post_errors(tmp_path, text, message):
    path = tmp_path / "bad.md"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ParseError) as excinfo:
        parse_post(path)
    assert message in str(excinfo.value)
    assert excinfo.value.path == path


def test_parse_post_missing_file(tmp_path):
    missing = tmp_path / "missing.md"
    with pytest.raises(ReadError) as excinfo:
        parse_post(missing)
    assert isinstance(excinfo.value, ParseError)
    assert excinfo.value.path == missing


def test_extract_frontmatter_handles_crlf_and_bom():
    meta, body = extract_frontmatter("\ufeff---\r\ntitle: T\r\n---\r\nBody\r\n")
    assert meta == "title: T"
    assert body == "Body\n"
    assert extract_frontmatter("title: T\n") is None


@pytest.mark.parametrize(
    "title, summary, draft",
    [
        ("Hello World", "", False),
        ('Quotes "inside" and colons: yes', "Summary with #hash and 'single' quotes", True),
        ("Café ☕ & <tags>", "Line one\nline two", False),
        ("2024", "- not a list", True),
        ("Next\x85Line", "Del\x7fChar", False),
        ("Tab\tand separator", "Bell\x07 and \\ backslash", True),
        ("Byte order \ufeff mark", "Emoji \U0001f600 outside the BMP", False),
    ],
)
def test_front_matter_round_trip(tmp_path, title, summary, draft):
    path = tmp_path / "round-trip.md"
    post_date = date(2025, 12, 31)
    path.write_text(
        format_front_matter(title, post_date, summary, draft) + "\nBody\n",
        encoding="utf-8",
    )
    post = parse_post(path)
    assert (post.title, post.date, post.summary, post.draft) == (
        title,
        post_date,
        summary,
        draft,
    )


def test_load_posts_filters_drafts_and_sorts(tmp_path):
    posts_dir = tmp_path / "posts"
    write_post(posts_dir, "a-first.md", "A", "2026-01-01")
    write_post(posts_dir, "b-newest.md", "B", "2026-03-01")
    write_post(posts_dir, "c-same-day.md", "C", "2026-01-01")
    write_post(posts_dir, "d-draft.md", "D", "2026-04-01", draft=True)
    (posts_dir / "notes.txt").write_text("ignored", encoding="utf-8")
    (posts_dir / "nested").mkdir()
    write_post(posts_dir / "nested", "e-nested.md", "E", "2026-05-01")

    posts = load_posts(posts_dir)
    assert [p.title for p in posts] == ["B", "A", "C"]

    with_drafts = load_posts(posts_dir, include_drafts=True)
    assert [p.title for p in with_drafts] == ["D", "B", "A", "C"]
    assert with_drafts[0].draft is True


def test_load_posts_fails_fast(tmp_path):
    posts_dir = tmp_path / "posts"
    write_post(posts_dir, "a-good.md", "Good", "2026-01-01")
    (posts_dir / "b-bad.md").write_text("no front matter", encoding="utf-8")
    write_post(posts_dir, "c-good.md", "Also good", "2026-01-02")

    with pytest.raises(ParseError) as excinfo:
        load_posts(posts_dir)
    assert excinfo.value.path == posts_dir / "b-bad.md"


def test_load_posts_missing_directory(tmp_path):
    with pytest.raises(ReadError):
        load_posts(tmp_path / "nope")


def test_sort_posts_is_stable():
    def make(title, day):
        return Post(title, day, "", False, title.lower(), "", Path(f"{title}.md"))

    posts = [
        make("X", date(2026, 1, 1)),
        make("Y", date(2026, 1, 2)),
        make("Z", date(2026, 1, 1)),
    ]
    assert [p.title for p in sort_posts(posts)] == ["Y", "X", "Z"]


def test_new_post(tmp_path):
    posts_dir = tmp_path / "content" / "posts"
    path = new_post(posts_dir, "My Great Post", today=date(2026, 10, 19))
    assert path == posts_dir / "2026-10-19-my-great-post.md"

    text = path.read_text(encoding="utf-8")
    assert 'title: "My Great Post"' in text
    assert "draft: true" in text
    assert "date: 2026-10-19" in text

    post = parse_post(path)
    assert post.title == "My Great Post"
    assert post.draft is True
    assert post.date == date(2026, 10, 19)


def test_new_post_refuses_to_overwrite(tmp_path):
    new_post(tmp_path, "Twice", today=date(2026, 1, 1))
    with pytest.raises(WriteError):
        new_post(tmp_path, "Twice", today=date(2026, 1, 1))


def test_new_post_rejects_empty_slug(tmp_path):
    with pytest.raises(ParseError):
        new_post(tmp_path, "!!!")
