"""
Root Typer application for the threadfeed CLI.

Runs the participating-feed pipelines against a JSON-lines log file, one
message record per line, using the in-memory collaborators.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.table import Table

from threadfeed.cli.utils import console, fail, make_feed, open_log, parse_blocks, render_items
from threadfeed.core.errors import ThreadfeedError
from threadfeed.core.settings import get_settings
from threadfeed.feeds.classify import describe
from threadfeed.framework.logging import bind_context, configure_logging

app = typer.Typer(
    name="threadfeed",
    help="threadfeed: participating-thread views over a message log.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("threadfeed")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"threadfeed {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ERROR"),
) -> None:
    """threadfeed CLI: inspect participating threads in a log file."""
    settings = get_settings()
    # an explicit --log-level wins over any earlier configuration
    configure_logging(
        level=(log_level or settings.log_level).upper(),
        format=settings.log_format,
        force=log_level is not None,
    )


@app.command("roots")
def roots(
    log_file: Path = typer.Argument(..., help="JSON-lines message log"),
    me: str = typer.Option(..., "--me", help="Local identity"),
    reverse: bool = typer.Option(False, "--reverse", "-r", help="Newest first"),
    limit: int | None = typer.Option(None, "--limit", "-n", min=1, help="Page size"),
    resume: float | None = typer.Option(None, "--resume", help="Resume cursor from a previous page"),
    only_started: bool = typer.Option(False, "--only-started", help="Only threads started by --me"),
    block: list[str] = typer.Option([], "--block", help="SOURCE:DEST block pair (repeatable)"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON lines"),
) -> None:
    """List thread roots --me has participated in."""
    settings = get_settings()
    bind_context(identity=me, operation="roots", page=resume)
    feed = make_feed(open_log(log_file), me, parse_blocks(block), settings)
    stream = feed.roots(reverse=reverse, limit=limit, resume=resume, only_started=only_started)
    try:
        items = asyncio.run(stream.collect())
    except ThreadfeedError as e:
        fail(e)
    render_items(items, as_json=as_json)


@app.command("classify")
def classify(
    log_file: Path = typer.Argument(..., help="JSON-lines message log"),
) -> None:
    """Show how each message in the log classifies as a bump."""
    table = Table()
    for column in ("Key", "Author", "Type", "Bump", "Root"):
        table.add_column(column)
    for message in open_log(log_file).messages:
        row = describe(message)
        table.add_row(*(str(row[k] or "") for k in ("key", "author", "type", "bump", "root")))
    console.print(table)
