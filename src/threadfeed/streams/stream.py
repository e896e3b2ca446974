"""
Lazy, pull-driven async streams built from composable stages.

A stage is any callable turning one async iterator into another. Stages are
async generators, so nothing runs until the consumer pulls, only one item is
in flight at a time, and closing the consumer closes every upstream stage
(and the source) in turn. An awaited collaborator call that is in flight
when the consuming task is cancelled is cancelled with it; its result is
never delivered.

Architecture:
    ::

        source ─► filter ─► async_map ─► map ─► ... ─► consumer
                   │            │
                   │            └── may suspend, may raise, may return SKIP
                   └── predicate False → item dropped

        Stream(source).filter(p).async_map(f)   fluent form
        compose(filter_stage(p), async_map_stage(f))   reusable Stage form

Examples:
    >>> stream = Stream(messages).filter(lambda m: m.author != me).map(str)
    >>> async with stream:
    ...     first = await anext(stream)
    >>> await Stream(messages).collect(limit=10)

Guardrails:
    ❌ DON'T: Buffer items inside a stage
    ✅ DO: Yield each item before pulling the next one

    ❌ DON'T: Catch errors from upstream to keep the stream alive
    ✅ DO: Let them propagate; items already yielded stay yielded
"""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")

Stage = Callable[[AsyncIterator[Any]], AsyncIterator[Any]]


class _Skip:
    """Marker returned by a mapping function to drop the current item."""

    _instance: _Skip | None = None

    def __new__(cls) -> _Skip:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SKIP"

    def __bool__(self) -> bool:
        return False


SKIP = _Skip()


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


@asynccontextmanager
async def closing_source(source: AsyncIterator[Any]):
    """Close ``source`` on exit if it supports ``aclose``."""
    try:
        yield source
    finally:
        aclose = getattr(source, "aclose", None)
        if aclose is not None:
            await aclose()


# ---------------------------------------------------------------------------
# Stage factories
# ---------------------------------------------------------------------------


def filter_stage(predicate: Callable[[T], Any]) -> Stage:
    """Keep items for which ``predicate`` is truthy."""

    async def stage(source: AsyncIterator[T]) -> AsyncIterator[T]:
        async with closing_source(source):
            async for item in source:
                if predicate(item):
                    yield item

    return stage


def async_filter_stage(predicate: Callable[[T], Any]) -> Stage:
    """Keep items for which ``predicate`` (sync or async) is truthy."""

    async def stage(source: AsyncIterator[T]) -> AsyncIterator[T]:
        async with closing_source(source):
            async for item in source:
                if await _resolve(predicate(item)):
                    yield item

    return stage


def map_stage(fn: Callable[[T], U]) -> Stage:
    """Transform each item synchronously."""

    async def stage(source: AsyncIterator[T]) -> AsyncIterator[U]:
        async with closing_source(source):
            async for item in source:
                yield fn(item)

    return stage


def async_map_stage(fn: Callable[[T], Awaitable[U | _Skip]]) -> Stage:
    """Transform each item with a coroutine; a ``SKIP`` result drops it."""

    async def stage(source: AsyncIterator[T]) -> AsyncIterator[U]:
        async with closing_source(source):
            async for item in source:
                result = await fn(item)
                if result is not SKIP:
                    yield result

    return stage


def tap_stage(fn: Callable[[T], Any]) -> Stage:
    """Call ``fn`` on each item for its side effect and pass the item on."""

    async def stage(source: AsyncIterator[T]) -> AsyncIterator[T]:
        async with closing_source(source):
            async for item in source:
                fn(item)
                yield item

    return stage


def compose(*stages: Stage) -> Stage:
    """Chain stages left to right into one stage."""

    def composed(source: AsyncIterator[Any]) -> AsyncIterator[Any]:
        for stage in stages:
            source = stage(source)
        return source

    return composed


# ---------------------------------------------------------------------------
# Stream
# ---------------------------------------------------------------------------


class Stream(Generic[T]):
    """Closable async iterator with fluent stage methods.

    Each fluent method returns a new Stream that owns the previous one;
    keep using only the newest.
    """

    def __init__(self, source: AsyncIterable[T]):
        self._iterator: AsyncIterator[T] = aiter(source)
        self._closed = False

    def __aiter__(self) -> Stream[T]:
        return self

    async def __anext__(self) -> T:
        if self._closed:
            raise StopAsyncIteration
        return await anext(self._iterator)

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        """Stop the stream and close every upstream stage and the source."""
        if self._closed:
            return
        self._closed = True
        aclose = getattr(self._iterator, "aclose", None)
        if aclose is not None:
            await aclose()

    async def __aenter__(self) -> Stream[T]:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # -- fluent stages -------------------------------------------------------

    def pipe(self, *stages: Stage) -> Stream[Any]:
        return Stream(compose(*stages)(self._iterator))

    def filter(self, predicate: Callable[[T], Any]) -> Stream[T]:
        return self.pipe(filter_stage(predicate))

    def async_filter(self, predicate: Callable[[T], Any]) -> Stream[T]:
        return self.pipe(async_filter_stage(predicate))

    def map(self, fn: Callable[[T], U]) -> Stream[U]:
        return self.pipe(map_stage(fn))

    def async_map(self, fn: Callable[[T], Awaitable[U | _Skip]]) -> Stream[U]:
        return self.pipe(async_map_stage(fn))

    def tap(self, fn: Callable[[T], Any]) -> Stream[T]:
        return self.pipe(tap_stage(fn))

    # -- consumption ---------------------------------------------------------

    async def collect(self, limit: int | None = None) -> list[T]:
        """Pull up to ``limit`` items (all if None), then close the stream."""
        items: list[T] = []
        try:
            if limit is not None and limit <= 0:
                return items
            async for item in self:
                items.append(item)
                if limit is not None and len(items) >= limit:
                    break
        finally:
            await self.aclose()
        return items


__all__ = [
    "SKIP",
    "Stage",
    "Stream",
    "closing_source",
    "filter_stage",
    "async_filter_stage",
    "map_stage",
    "async_map_stage",
    "tap_stage",
    "compose",
]
