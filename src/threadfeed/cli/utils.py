"""
CLI utility helpers: output formatting and feed construction.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from threadfeed.core.errors import ThreadfeedError
from threadfeed.core.models import ResolvedItem
from threadfeed.core.settings import FeedSettings
from threadfeed.feeds.participating import ParticipatingFeed
from threadfeed.memory import (
    InMemoryBlockRegistry,
    InMemoryFeedLog,
    InMemoryThreadReader,
    LogAboutsResolver,
    load_jsonl,
)

console = Console()
err_console = Console(stderr=True)


def open_log(path: Path) -> InMemoryFeedLog:
    """Load a JSON-lines log, exiting with a readable message on bad input."""
    try:
        return load_jsonl(path)
    except FileNotFoundError:
        err_console.print(f"[red]No such log file:[/red] {path}")
        raise typer.Exit(code=2)
    except (ValueError, KeyError) as e:
        err_console.print(f"[red]Invalid log file {path}:[/red] {e}")
        raise typer.Exit(code=2)


def parse_blocks(pairs: list[str]) -> list[tuple[str, str]]:
    """Parse ``SOURCE:DEST`` block options."""
    blocks = []
    for pair in pairs:
        source, sep, dest = pair.partition(":")
        if not sep or not source or not dest:
            raise typer.BadParameter(f"expected SOURCE:DEST, got {pair!r}", param_hint="--block")
        blocks.append((source, dest))
    return blocks


def make_feed(
    log: InMemoryFeedLog,
    identity: str,
    blocks: list[tuple[str, str]],
    settings: FeedSettings,
) -> ParticipatingFeed:
    return ParticipatingFeed(
        identity,
        log=log,
        registry=InMemoryBlockRegistry(blocks),
        reader=InMemoryThreadReader(log),
        abouts=LogAboutsResolver(log),
        settings=settings,
    )


def render_items(items: list[ResolvedItem], *, as_json: bool = False) -> None:
    """Print feed items as a table or as JSON lines."""
    if as_json:
        for item in items:
            console.print_json(json.dumps(item.to_dict(), default=str))
        return

    table = Table(title=f"{len(items)} thread(s)")
    table.add_column("Root", style="cyan", no_wrap=True)
    table.add_column("Author")
    table.add_column("Title / text")
    table.add_column("Recent bumps")
    table.add_column("Replies", justify="right")
    for item in items:
        message = item.message
        about = dict(message.about or {})
        title = about.get("title") or about.get("name") or message.content.get("text", "")
        bumps = ", ".join(f"{b.author} {b.kind.value}" for b in item.bumps[:3])
        table.add_row(message.key, message.author, str(title)[:60], bumps, str(item.reply_count))
    console.print(table)

    if items and items[-1].resume is not None:
        console.print(f"[bold]Resume:[/bold] {items[-1].resume}")


def fail(error: ThreadfeedError) -> Any:
    err_console.print(f"[red]{error.__class__.__name__}:[/red] {error.message}")
    context = error.context.to_dict()
    if context:
        err_console.print(context)
    raise typer.Exit(code=1)
