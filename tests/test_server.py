import http.client
import logging
import os
import threading
import time
import urllib.error
import urllib.request

import pytest

from postpress.build import BuildError
from postpress.protocols import Rebuilder
from postpress.server import DevServer, ReloadBroadcaster, _ChangeHandler, _ReloadHandler


class FakeBuilder:
    def __init__(self, fail=False):
        self.calls = 0
        self.fail = fail

    def rebuild(self):
        self.calls += 1
        if self.fail:
            raise BuildError("parse posts", None, "boom")


class DummyEvent:
    def __init__(self, path, event_type="modified", is_directory=False):
        self.src_path = str(path)
        self.event_type = event_type
        self.is_directory = is_directory


def make_server(tmp_path, builder=None, **kwargs):
    content = tmp_path / "content"
    content.mkdir(exist_ok=True)
    output = tmp_path / "dist"
    output.mkdir(exist_ok=True)
    kwargs.setdefault("settle_seconds", 0)
    return DevServer(builder or FakeBuilder(), output, [content], port=0, **kwargs)


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def test_fake_builder_is_rebuilder():
    assert isinstance(FakeBuilder(), Rebuilder)


def test_broadcaster_delivers_to_every_client():
    broadcaster = ReloadBroadcaster()
    first = broadcaster.subscribe()
    second = broadcaster.subscribe()

    assert broadcaster.broadcast() == 2
    assert first.get_nowait() == "reload"
    assert second.get_nowait() == "reload"


def test_broadcaster_never_blocks_on_slow_client():
    broadcaster = ReloadBroadcaster()
    channel = broadcaster.subscribe()

    broadcaster.broadcast()
    broadcaster.broadcast()

    assert channel.get_nowait() == "reload"
    assert channel.empty()


def test_broadcaster_unsubscribe():
    broadcaster = ReloadBroadcaster()
    channel = broadcaster.subscribe()
    broadcaster.unsubscribe(channel)
    broadcaster.unsubscribe(channel)

    assert len(broadcaster) == 0
    assert broadcaster.broadcast() == 0
    assert channel.empty()


def test_rebuild_notifies_clients_once(tmp_path):
    builder = FakeBuilder()
    server = make_server(tmp_path, builder)
    channels = [server.broadcaster.subscribe() for _ in range(3)]
    (tmp_path / "content" / "post.md").write_text("one", encoding="utf-8")

    assert server.rebuild() is True
    assert builder.calls == 1
    for channel in channels:
        assert channel.get_nowait() == "reload"
        assert channel.empty()


def test_rebuild_skips_unchanged_sources(tmp_path):
    builder = FakeBuilder()
    server = make_server(tmp_path, builder)
    source = tmp_path / "content" / "post.md"
    source.write_text("one", encoding="utf-8")

    assert server.rebuild() is True
    assert server.rebuild() is False
    assert builder.calls == 1

    source.write_text("two, longer", encoding="utf-8")
    assert server.rebuild() is True
    assert builder.calls == 2


def test_failed_rebuild_is_logged_and_not_broadcast(tmp_path, caplog):
    server = make_server(tmp_path, FakeBuilder(fail=True))
    channel = server.broadcaster.subscribe()
    (tmp_path / "content" / "post.md").write_text("x", encoding="utf-8")

    with caplog.at_level(logging.ERROR, logger="postpress.server"):
        assert server.rebuild() is False

    assert "Build error: parse posts: boom" in caplog.text
    assert channel.empty()


def test_change_handler_filters_events(tmp_path):
    server = make_server(tmp_path, ignore_dirs=[tmp_path / "dist.staging"])
    calls = []
    server.rebuild = lambda: calls.append(True)
    handler = _ChangeHandler(server)

    handler.on_any_event(DummyEvent(tmp_path / "dist" / "index.html"))
    handler.on_any_event(DummyEvent(tmp_path / "dist.staging" / "index.html", "created"))
    handler.on_any_event(DummyEvent(tmp_path / "content" / "posts", is_directory=True))
    handler.on_any_event(DummyEvent(tmp_path / "content" / "a.md", event_type="opened"))
    handler.on_any_event(DummyEvent(tmp_path / "content" / "a.md", event_type="closed"))
    assert calls == []

    for event_type in ("created", "modified", "deleted", "moved"):
        handler.on_any_event(DummyEvent(tmp_path / "content" / "a.md", event_type))
    assert len(calls) == 4


def test_is_ignored(tmp_path):
    server = make_server(tmp_path)
    assert server.is_ignored(tmp_path / "dist" / "a" / "b.html")
    assert not server.is_ignored(tmp_path / "content" / "a.md")


@pytest.fixture
def running_server(tmp_path):
    server = make_server(tmp_path, keepalive_interval=0.05)
    (tmp_path / "dist" / "index.html").write_text("<h1>Home</h1>", encoding="utf-8")
    httpd = server.create_http_server()
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    server._httpd = httpd
    yield server, httpd.server_address[1]
    server.stop()
    server._close()
    thread.join(timeout=5)


def test_serves_output_files(running_server):
    server, port = running_server
    with urllib.request.urlopen(f"http://127.0.0.1:{port}/") as resp:
        assert resp.status == 200
        assert resp.read() == b"<h1>Home</h1>"
        assert "no-cache" in resp.headers["Cache-Control"]

    with pytest.raises(urllib.error.HTTPError) as excinfo:
        urllib.request.urlopen(f"http://127.0.0.1:{port}/missing.html")
    assert excinfo.value.code == 404


def test_reload_stream(running_server):
    server, port = running_server
    conn = http.client.HTTPConnection("127.0.0.1", port, timeout=5)
    conn.request("GET", "/_reload")
    resp = conn.getresponse()
    try:
        assert resp.status == 200
        assert resp.getheader("Content-Type") == "text/event-stream"
        assert len(server.broadcaster) == 1

        assert server.broadcaster.broadcast() == 1
        lines = []
        while "data: reload" not in lines:
            line = resp.fp.readline().decode("utf-8").strip()
            assert line or lines, "stream closed early"
            lines.append(line)
    finally:
        resp.close()
        conn.close()

    assert wait_for(lambda: len(server.broadcaster) == 0)


def test_watcher_triggers_single_rebuild(tmp_path):
    builder = FakeBuilder()
    server = make_server(tmp_path, builder, settle_seconds=0.1)
    server._last_signature = server._compute_signature()
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    pending = scratch / "post.md"
    pending.write_text("---\ntitle: New\n---\n", encoding="utf-8")

    server._start_watcher()
    try:
        os.replace(pending, tmp_path / "content" / "post.md")
        assert wait_for(lambda: builder.calls >= 1)
        time.sleep(0.5)
        assert builder.calls == 1
    finally:
        server._close()


def test_in_place_save_triggers_single_rebuild(tmp_path):
    builder = FakeBuilder()
    server = make_server(tmp_path, builder, settle_seconds=0.1)
    post = tmp_path / "content" / "post.md"
    post.write_text("---\ntitle: Draft\n---\n", encoding="utf-8")
    server._last_signature = server._compute_signature()

    server._start_watcher()
    try:
        for round_number in range(1, 6):
            # write_text truncates then writes, which watchdog reports as two events.
            post.write_text(
                f"---\ntitle: Revision {round_number}\n---\n" + "body\n" * round_number,
                encoding="utf-8",
            )
            assert wait_for(lambda: builder.calls >= round_number)
            time.sleep(0.5)
            assert builder.calls == round_number
    finally:
        server._close()


def test_settled_signature_waits_for_writes_to_finish(tmp_path):
    server = make_server(tmp_path, settle_seconds=0.05)
    post = tmp_path / "content" / "post.md"
    post.write_text("", encoding="utf-8")

    def finish_write():
        time.sleep(0.02)
        post.write_text("full contents", encoding="utf-8")

    writer = threading.Thread(target=finish_write)
    writer.start()
    signature = server._settled_signature()
    writer.join()

    assert signature == server._compute_signature()


def test_handler_base_class_has_no_shared_state():
    assert _ReloadHandler.broadcaster is None
    assert _ReloadHandler.stop_event is None


def test_bound_handlers_are_independent(tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    first = make_server(tmp_path / "a")
    second = make_server(tmp_path / "b")
    first_httpd = first.create_http_server()
    second_httpd = second.create_http_server()
    try:
        first_handler = first_httpd.RequestHandlerClass.func
        second_handler = second_httpd.RequestHandlerClass.func
        assert first_handler.broadcaster is first.broadcaster
        assert second_handler.broadcaster is second.broadcaster
        assert first_handler.broadcaster is not second_handler.broadcaster
    finally:
        first_httpd.server_close()
        second_httpd.server_close()
