"""Command-line interface for Postpress.

This module defines the CLI commands using the Click framework.

Commands:
- build: Build the site into the output directory (drafts excluded).
- serve: Run the development server with live reload (drafts included).
- new: Create a new draft post.
- init: Scaffold a new Postpress project.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

import click

from . import __version__
from .config import SiteConfig, load_config
from .errors import SiteError

# Path to the project skeleton copied by `postpress init`
_SKELETON_DIR = Path(__file__).parent / "skeleton"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="postpress")
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Project root directory.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, root: Path, verbose: bool):
    """Postpress static site generator."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )
    ctx.obj = root.resolve()
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_usage(), err=True)
        ctx.exit(2)


def _load(project_root: Path) -> SiteConfig:
    try:
        return load_config(project_root)
    except SiteError as exc:
        raise click.ClickException(str(exc)) from exc


def _report_build_failure(exc, project_root: Path) -> None:
    """Display a build error and exit with status 1."""
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    click.echo(click.style(f"  Step: {exc.step}", fg="yellow"), err=True)
    if exc.source_path is not None:
        try:
            shown = exc.source_path.relative_to(project_root)
        except ValueError:
            shown = exc.source_path
        click.echo(click.style(f"  File: {shown}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
    raise SystemExit(1)


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft posts")
@click.pass_obj
def build(project_root: Path, drafts: bool):
    """Build the site into the output directory."""
    from .build import BuildError, SiteBuilder

    config = _load(project_root)
    try:
        result = SiteBuilder(config, include_drafts=drafts).rebuild()
    except BuildError as exc:
        _report_build_failure(exc, project_root)
        return
    click.echo(f"Built {len(result.posts)} posts into {result.output_dir}")


@cli.command()
@click.option("--host", default=None, help="Address to bind (overrides postpress.yaml)")
@click.option(
    "--port",
    type=int,
    default=None,
    help="Port to run the dev server (overrides postpress.yaml, default 8080)",
)
@click.pass_obj
def serve(project_root: Path, host: str | None, port: int | None):
    """Run dev server with live reload."""
    from .build import BuildError, SiteBuilder
    from .server import DevServer

    config = _load(project_root)
    host = config.host if host is None else host
    port = config.port if port is None else port
    config = config.with_overrides(dev_mode=True, base_url=f"http://localhost:{port}")
    builder = SiteBuilder(config, include_drafts=True, staged=True)
    server = DevServer(
        builder,
        config.output_dir,
        config.watch_dirs,
        host=host,
        port=port,
        ignore_dirs=[builder.staging_dir, builder.backup_dir],
    )
    try:
        server.start()
    except BuildError as exc:
        _report_build_failure(exc, project_root)


@cli.command()
@click.argument("title")
@click.pass_obj
def new(project_root: Path, title: str):
    """Create a new draft post titled TITLE."""
    from .content import new_post

    config = _load(project_root)
    try:
        path = new_post(config.posts_dir, title)
    except SiteError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Created: {path}")
    click.echo(f"Preview: http://localhost:{config.port}/posts/{path.stem}/")


@cli.command()
@click.argument("directory", type=click.Path(file_okay=False, path_type=Path))
def init(directory: Path):
    """Scaffold a new Postpress project in DIRECTORY."""
    target = directory.resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New Postpress site created at {target}")


def _scaffold(root: Path) -> None:
    """Copy the project skeleton into root.

    Args:
        root: Root directory for the new project.
    """
    for src_path in _SKELETON_DIR.rglob("*"):
        if src_path.is_dir():
            continue
        rel_path = src_path.relative_to(_SKELETON_DIR)
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)


def main():
    """Entry point for the CLI application."""
    cli()
