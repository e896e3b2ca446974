"""
Resumable, limited pages over a historical source.

``ResumablePager`` pulls raw items from a finite source, runs them through a
``filter_map`` stage and stops after ``limit`` emitted items. The item that
fills the page carries a ``resume`` cursor: the position (via
``get_resume``) of the raw item whose processing produced it. Re-opening
the source strictly past that cursor, in the same direction, continues the
page sequence without re-scanning or skipping anything.

Architecture:
    ::

        source ─► tap(record cursor) ─► filter_map ─► take(limit) ─► consumer
                        │                                 │
                        └──────── last raw cursor ────────┴─► item.resume

    The tap only works because every stage is one-in, at-most-one-out and
    nothing buffers: when filter_map yields, the last raw item pulled is
    the one it was derived from.

Examples:
    >>> pager = ResumablePager(
    ...     log.open_feed_stream(reverse=True, lt=cursor),
    ...     filter_map=stage,
    ...     limit=20,
    ...     get_resume=lambda msg: msg.receive_timestamp,
    ...     set_resume=lambda item, c: item.with_resume(c),
    ... )
    >>> page = await pager.stream().collect()
    >>> page[-1].resume   # None if the source ran dry first

Guardrails:
    ❌ DON'T: Read the resume cursor from the emitted item's own fields
    ✅ DO: Take it from the raw source item (emitted items may be projections)

    ❌ DON'T: Keep pulling after the limit is reached
    ✅ DO: Close the source as soon as the page is full
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any, Generic, TypeVar

from threadfeed.core.errors import ConfigError
from threadfeed.framework.logging import get_logger
from threadfeed.streams.stream import Stage, Stream, closing_source, compose, tap_stage

log = get_logger(__name__)

RawT = TypeVar("RawT")
ItemT = TypeVar("ItemT")

_UNSET = object()


def pager_bounds(reverse: bool, resume: Any | None) -> dict[str, Any]:
    """Source query options for a page starting after ``resume``.

    Forward pages continue strictly after the cursor (``gt``), reverse
    pages strictly before it (``lt``).
    """
    if resume is None:
        return {}
    return {"lt": resume} if reverse else {"gt": resume}


class ResumablePager(Generic[RawT, ItemT]):
    """Wraps a finite source with a limit and a resume cursor.

    Args:
        source: Raw, finite async source already bounded by the cursor.
        filter_map: Stage turning raw items into emitted items.
        limit: Maximum number of emitted items; None for no limit.
        get_resume: Cursor of a raw item.
        set_resume: Returns a copy of an emitted item carrying a cursor.
    """

    def __init__(
        self,
        source: AsyncIterator[RawT],
        *,
        filter_map: Stage,
        get_resume: Callable[[RawT], Any],
        set_resume: Callable[[ItemT, Any], ItemT],
        limit: int | None = None,
    ):
        if limit is not None and limit < 1:
            raise ConfigError(f"page limit must be >= 1, got {limit}")
        self._source = source
        self._filter_map = filter_map
        self._get_resume = get_resume
        self._set_resume = set_resume
        self._limit = limit
        self._cursor: Any = _UNSET
        self.emitted = 0
        self.scanned = 0

    @property
    def last_cursor(self) -> Any | None:
        """Cursor of the last raw item pulled, None before the first pull."""
        return None if self._cursor is _UNSET else self._cursor

    def _record(self, raw: RawT) -> None:
        self.scanned += 1
        self._cursor = self._get_resume(raw)

    async def _iterate(self) -> AsyncIterator[ItemT]:
        items = compose(tap_stage(self._record), self._filter_map)(self._source)
        async with closing_source(items):
            async for item in items:
                self.emitted += 1
                if self._limit is not None and self.emitted >= self._limit:
                    log.debug(
                        "pager.limit_reached",
                        limit=self._limit,
                        scanned=self.scanned,
                        resume=self.last_cursor,
                    )
                    yield self._set_resume(item, self.last_cursor)
                    return
                yield item
        log.debug("pager.source_exhausted", emitted=self.emitted, scanned=self.scanned)

    def stream(self) -> Stream[ItemT]:
        """Open the page as a Stream."""
        return Stream(self._iterate())


__all__ = ["ResumablePager", "pager_bounds"]
