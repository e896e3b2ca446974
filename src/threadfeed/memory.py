"""In-memory collaborators for the participating feed.

Every boundary the feed depends on has a small in-memory implementation
here, so pipelines can run against a list of messages (tests, the CLI,
notebooks) without a real log store.

ARCHITECTURE
────────────
::

    InMemoryFeedLog        → FeedLog       (ordered list + live tail)
    InMemoryBlockRegistry  → BlockRegistry (set of (source, dest) pairs)
    InMemoryThreadReader   → ThreadReader  (summaries computed from the log)
    LogAboutsResolver      → AboutsResolver (about messages targeting a key)

    Factories:
      make_post(key, author, root=None)
      make_about(key, author, about, **fields)
      make_attending(key, author, gathering, remove=False)
      load_jsonl(path)     → InMemoryFeedLog

Each double records what it was asked (``fetches``, ``lookups``, ``reads``,
``resolved``) and can be told to fail (``fail_keys`` / ``error``) so tests
can assert on call counts and error propagation.

Example::

    log = InMemoryFeedLog([
        make_post("%root", "@alice"),
        make_post("%r1", "@me", root="%root"),
    ])
    feed = ParticipatingFeed(
        "@me",
        log=log,
        registry=InMemoryBlockRegistry(),
        reader=InMemoryThreadReader(log),
        abouts=LogAboutsResolver(log),
    )
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Iterable
from dataclasses import replace
from pathlib import Path
from typing import Any

from threadfeed.core.errors import MessageNotFoundError
from threadfeed.core.models import Bump, Message, ResolvedItem, ThreadSummary
from threadfeed.core.protocols import BumpClassifier, ItemStage
from threadfeed.streams.stream import Stream

DEFAULT_BUMP_LIMIT = 100


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_post(
    key: str,
    author: str,
    *,
    root: str | None = None,
    text: str = "",
    rts: float = 0,
) -> Message:
    content: dict[str, Any] = {"type": "post", "text": text}
    if root is not None:
        content["root"] = root
    return Message(key=key, author=author, content=content, receive_timestamp=rts)


def make_about(key: str, author: str, about: str, *, rts: float = 0, **fields: Any) -> Message:
    content = {"type": "about", "about": about, **fields}
    return Message(key=key, author=author, content=content, receive_timestamp=rts)


def make_attending(
    key: str,
    author: str,
    gathering: str,
    *,
    remove: bool = False,
    rts: float = 0,
) -> Message:
    attendee: dict[str, Any] = {"link": author}
    if remove:
        attendee["remove"] = True
    return make_about(key, author, gathering, rts=rts, attendee=attendee)


# ---------------------------------------------------------------------------
# Log
# ---------------------------------------------------------------------------


class InMemoryFeedLog:
    """Append-only list of messages ordered by receive timestamp.

    Messages added with ``receive_timestamp == 0`` get the next ordinal;
    explicit timestamps must be strictly increasing.
    """

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: list[Message] = []
        self._by_key: dict[str, Message] = {}
        self._changed = asyncio.Condition()
        self.fetches: list[str] = []
        self.fail_keys: dict[str, Exception] = {}
        self.open_calls: list[dict[str, Any]] = []
        for message in messages:
            self.add(message)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def add(self, message: Message) -> Message:
        """Append without waking live readers; use for seeding."""
        if message.key in self._by_key:
            raise ValueError(f"duplicate message key {message.key!r}")
        last = self._messages[-1].receive_timestamp if self._messages else 0
        if not message.receive_timestamp:
            message = replace(message, receive_timestamp=last + 1)
        elif message.receive_timestamp <= last:
            raise ValueError(
                f"receive timestamps must increase: {message.receive_timestamp} <= {last}"
            )
        self._messages.append(message)
        self._by_key[message.key] = message
        return message

    async def publish(self, message: Message) -> Message:
        """Append and wake live readers."""
        async with self._changed:
            message = self.add(message)
            self._changed.notify_all()
        return message

    def lookup(self, key: str) -> Message | None:
        """Uncounted read, for collaborators built on this log."""
        return self._by_key.get(key)

    async def get(self, key: str) -> Message:
        self.fetches.append(key)
        if key in self.fail_keys:
            raise self.fail_keys[key]
        message = self._by_key.get(key)
        if message is None:
            raise MessageNotFoundError(f"message {key} not in log", key=key)
        return message

    @staticmethod
    def _in_bounds(message: Message, gt: float | None, lt: float | None) -> bool:
        if gt is not None and message.receive_timestamp <= gt:
            return False
        if lt is not None and message.receive_timestamp >= lt:
            return False
        return True

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
        """Open a stream; the old/live boundary is fixed at call time."""
        self.open_calls.append(
            {"live": live, "old": old, "reverse": reverse, "gt": gt, "lt": lt, "limit": limit}
        )
        return self._stream(
            len(self._messages),
            live=live,
            old=old,
            reverse=reverse,
            gt=gt,
            lt=lt,
            limit=limit,
        )

    async def _stream(
        self,
        position: int,
        *,
        live: bool,
        old: bool,
        reverse: bool,
        gt: float | None,
        lt: float | None,
        limit: int | None,
    ) -> AsyncIterator[Message]:
        count = 0

        if old:
            snapshot = self._messages[:position]
            if reverse:
                snapshot = snapshot[::-1]
            for message in snapshot:
                if not self._in_bounds(message, gt, lt):
                    continue
                yield message
                count += 1
                if limit is not None and count >= limit:
                    return

        if not live:
            return

        while True:
            async with self._changed:
                await self._changed.wait_for(lambda: len(self._messages) > position)
            while position < len(self._messages):
                message = self._messages[position]
                position += 1
                if not self._in_bounds(message, gt, lt):
                    continue
                yield message
                count += 1
                if limit is not None and count >= limit:
                    return


def load_jsonl(path: str | Path) -> InMemoryFeedLog:
    """Build a log from a JSON-lines file of message records."""
    log = InMemoryFeedLog()
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                log.add(Message.from_dict(json.loads(line)))
    return log


# ---------------------------------------------------------------------------
# Blocking registry
# ---------------------------------------------------------------------------


class InMemoryBlockRegistry:
    """Set of (source, dest) block pairs.

    With ``asynchronous=True``, ``is_blocking`` returns a coroutine.
    """

    def __init__(self, blocks: Iterable[tuple[str, str]] = (), *, asynchronous: bool = False):
        self._blocks = set(blocks)
        self.asynchronous = asynchronous
        self.lookups: list[tuple[str, str]] = []
        self.error: Exception | None = None

    def block(self, source: str, dest: str) -> None:
        self._blocks.add((source, dest))

    def unblock(self, source: str, dest: str) -> None:
        self._blocks.discard((source, dest))

    def _answer(self, source: str, dest: str) -> bool:
        self.lookups.append((source, dest))
        if self.error is not None:
            raise self.error
        return (source, dest) in self._blocks

    async def _answer_async(self, source: str, dest: str) -> bool:
        await asyncio.sleep(0)
        return self._answer(source, dest)

    def is_blocking(self, source: str, dest: str):
        if self.asynchronous:
            return self._answer_async(source, dest)
        return self._answer(source, dest)


# ---------------------------------------------------------------------------
# Thread summarizer
# ---------------------------------------------------------------------------


class InMemoryThreadReader:
    """Summaries computed from an ``InMemoryFeedLog``.

    A thread is the root followed by every message whose root reference is
    the root key. The block filter, when given, runs over the thread before
    anything is counted. Bumps (the root's own included) come out
    most-recent-first, capped at ``bump_limit``; replies never include the
    root.
    """

    def __init__(self, log: InMemoryFeedLog, *, bump_limit: int = DEFAULT_BUMP_LIMIT):
        self._log = log
        self.bump_limit = bump_limit
        self.reads: list[dict[str, Any]] = []
        self.error: Exception | None = None

    async def _thread(self, root_key: str) -> AsyncIterator[ResolvedItem]:
        root = self._log.lookup(root_key)
        if root is not None:
            yield ResolvedItem(root)
        for message in self._log.messages:
            if message.root_key == root_key:
                yield ResolvedItem(message, root=root)

    async def read_thread(
        self,
        root_key: str,
        *,
        recent_limit: int,
        bump_filter: BumpClassifier,
        block_filter: ItemStage | None = None,
    ) -> ThreadSummary:
        self.reads.append(
            {"root": root_key, "recent_limit": recent_limit, "block_filter": block_filter is not None}
        )
        if self.error is not None:
            raise self.error

        thread = Stream(self._thread(root_key))
        if block_filter is not None:
            thread = thread.pipe(block_filter)
        members = [item.message for item in await thread.collect()]

        bumps = []
        for message in reversed(members):
            kind = bump_filter(message)
            if kind is not None:
                bumps.append(Bump(message.author, kind, message.key, message.receive_timestamp))
        replies = [m for m in members if m.content_type == "post" and m.key != root_key]
        recent = replies[-recent_limit:] if recent_limit > 0 else []
        return ThreadSummary(
            bumps=tuple(bumps[: self.bump_limit]),
            replies=tuple(recent),
            reply_count=len(replies),
        )


# ---------------------------------------------------------------------------
# Abouts
# ---------------------------------------------------------------------------


class LogAboutsResolver:
    """Attaches about metadata (newest value per field wins) from the log."""

    IGNORED_FIELDS = frozenset({"type", "about", "attendee"})

    def __init__(self, log: InMemoryFeedLog):
        self._log = log
        self.resolved: list[str] = []
        self.error: Exception | None = None

    async def resolve(self, message: Message) -> Message:
        self.resolved.append(message.key)
        if self.error is not None:
            raise self.error
        about: dict[str, Any] = {}
        for candidate in self._log.messages:
            if candidate.content_type == "about" and candidate.content.get("about") == message.key:
                about.update(
                    (k, v) for k, v in candidate.content.items() if k not in self.IGNORED_FIELDS
                )
        if not about:
            return message
        return message.with_about(about)


__all__ = [
    "InMemoryFeedLog",
    "InMemoryBlockRegistry",
    "InMemoryThreadReader",
    "LogAboutsResolver",
    "make_post",
    "make_about",
    "make_attending",
    "load_jsonl",
]
