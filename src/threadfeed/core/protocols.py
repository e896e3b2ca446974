"""
Contracts for the collaborators the feed pipelines are built on.

The log store, the blocking registry, the thread summarizer and the abouts
resolver live outside this package. Anything with the right shape works;
``threadfeed.memory`` has in-memory implementations of all four.

Architecture:
    ::

        protocols.py
        ├── FeedLog          : open_feed_stream(...) + get(key)
        ├── BlockRegistry    : is_blocking(source, dest), sync or async
        ├── ThreadReader     : read_thread(root_key, ...) → ThreadSummary
        └── AboutsResolver   : resolve(message) → message with about metadata

Guardrails:
    ❌ DON'T: Return a default root or an unresolved message on failure
    ✅ DO: Raise; the stream surfaces the error to its consumer

    ❌ DON'T: Buffer the whole log in open_feed_stream
    ✅ DO: Yield lazily; consumers pull one message at a time
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Protocol, runtime_checkable

from threadfeed.core.models import BumpKind, Message, ResolvedItem, ThreadSummary

BumpClassifier = Callable[[Message], BumpKind | None]
ItemStage = Callable[[AsyncIterator[ResolvedItem]], AsyncIterator[ResolvedItem]]


@runtime_checkable
class FeedLog(Protocol):
    """Append-only message log with live tail and historical queries."""

    def open_feed_stream(
        self,
        *,
        live: bool = False,
        old: bool = True,
        reverse: bool = False,
        gt: float | None = None,
        lt: float | None = None,
        limit: int | None = None,
    ) -> AsyncIterator[Message]:
        """
        Lazily yield messages ordered by receive timestamp.

        Args:
            live: Keep yielding messages appended after the call.
            old: Include messages already in the log.
            reverse: Descending order instead of ascending.
            gt: Only messages received strictly after this cursor.
            lt: Only messages received strictly before this cursor.
            limit: Stop after this many messages.
        """
        ...

    async def get(self, key: str) -> Message:
        """Fetch a message by key; raise MessageNotFoundError if unknown."""
        ...


@runtime_checkable
class BlockRegistry(Protocol):
    """Answers whether one identity blocks another."""

    def is_blocking(self, source: str, dest: str) -> bool | Awaitable[bool]:
        """True if ``source`` blocks ``dest``. May return an awaitable."""
        ...


@runtime_checkable
class ThreadReader(Protocol):
    """Computes the bounded recent-activity summary of a thread."""

    async def read_thread(
        self,
        root_key: str,
        *,
        recent_limit: int,
        bump_filter: BumpClassifier,
        block_filter: ItemStage | None = None,
    ) -> ThreadSummary:
        """
        Summarise the thread rooted at ``root_key``.

        Args:
            root_key: Key of the thread root.
            recent_limit: Maximum number of recent replies to include.
            bump_filter: Classifier turning thread messages into bumps.
            block_filter: Stage applied to thread messages before summarising.
        """
        ...


@runtime_checkable
class AboutsResolver(Protocol):
    """Augments a message with "about" metadata (names, titles...)."""

    async def resolve(self, message: Message) -> Message:
        ...


__all__ = [
    "BumpClassifier",
    "ItemStage",
    "FeedLog",
    "BlockRegistry",
    "ThreadReader",
    "AboutsResolver",
]
