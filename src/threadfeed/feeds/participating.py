"""
The participating feed: threads the local identity takes part in.

Two read-only views over the log, both lazy and pull-driven:

``latest(only_started=False)``
    Live tail (no old data). Skips the identity's own brand-new threads,
    keeps its replies, keeps only bump messages, resolves roots, optionally
    keeps only threads the identity started, then checks participation
    (cheap check, summary fallback). Never ends on its own.

``roots(reverse=False, limit=None, resume=None, only_started=False)``
    Historical pages of thread roots. Per raw message: bump filter → resolve
    root → optional started-by-me filter → block filter (local identity,
    root-aware) → one item per root → project to the root → abouts →
    thread summary (recent replies, inner block filter for the item author
    and the local identity) → participation check on the summary (skipped
    with ``only_started``). The item that fills the page carries ``resume``.

Architecture:
    ::

        ParticipatingFeed(identity, log, registry, reader, abouts)
        ├── cache: RootCache           shared by every stream of the instance
        ├── latest() → Stream[ResolvedItem]
        └── roots()  → Stream[ResolvedItem]   via ResumablePager

Examples:
    >>> feed = ParticipatingFeed("@me", log=log, registry=registry, reader=reader, abouts=abouts)
    >>> page = await feed.roots(reverse=True, limit=20).collect()
    >>> more = await feed.roots(reverse=True, limit=20, resume=page[-1].resume).collect()

    >>> async with feed.latest() as live:
    ...     async for item in live:
    ...         render(item)

Guardrails:
    ❌ DON'T: Create a RootCache per call
    ✅ DO: Let the instance own one and pass it to every resolver

    ❌ DON'T: Reuse a RootDeduplicator across streams
    ✅ DO: Build a fresh one per ``roots`` call
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from threadfeed.core.cache import RootCache
from threadfeed.core.errors import FetchFailedError, ThreadfeedError, wrap_error
from threadfeed.core.models import Message, ResolvedItem
from threadfeed.core.protocols import AboutsResolver, BlockRegistry, FeedLog, ThreadReader
from threadfeed.core.settings import FeedSettings, get_settings
from threadfeed.feeds.blocks import BlockFilter
from threadfeed.feeds.classify import bump_filter, classify_bump
from threadfeed.feeds.participants import ParticipantFilter, read_summary
from threadfeed.feeds.roots import RootResolver, unique_roots
from threadfeed.framework.logging import get_logger, new_stream_id
from threadfeed.streams.pager import ResumablePager, pager_bounds
from threadfeed.streams.stream import (
    Stage,
    Stream,
    async_map_stage,
    closing_source,
    compose,
    filter_stage,
    map_stage,
)

log = get_logger(__name__)


class ParticipatingFeed:
    """Builds the ``latest`` and ``roots`` streams for one local identity."""

    MANIFEST = {"latest": "source", "roots": "source"}

    def __init__(
        self,
        identity: str,
        *,
        log: FeedLog,
        registry: BlockRegistry,
        reader: ThreadReader,
        abouts: AboutsResolver,
        settings: FeedSettings | None = None,
        cache: RootCache | None = None,
    ):
        self.identity = identity
        self.settings = settings or get_settings()
        self.cache = cache if cache is not None else RootCache(max_size=self.settings.root_cache_size)
        self._log = log
        self._registry = registry
        self._reader = reader
        self._abouts = abouts
        self._resolver = RootResolver(log, self.cache)

    # -- predicates ----------------------------------------------------------

    def _not_own_new_thread(self, message: Message) -> bool:
        # only my own root-level posts are dropped; replies and about updates still bump
        return (
            message.author != self.identity
            or message.root_key is not None
            or message.content_type != "post"
        )

    def _started_by_me(self, item: ResolvedItem) -> bool:
        return item.root_message.author == self.identity

    # -- per-item async steps ------------------------------------------------

    async def _resolve_abouts(self, item: ResolvedItem) -> ResolvedItem:
        try:
            message = await self._abouts.resolve(item.message)
        except Exception as e:
            log.warning("abouts.resolve_failed", key=item.key, error=str(e))
            raise wrap_error(e, FetchFailedError, "abouts resolution failed", stage="abouts", key=item.key)
        return ResolvedItem(message)

    async def _attach_summary(self, item: ResolvedItem) -> ResolvedItem:
        thread_blocks = BlockFilter([item.author, self.identity], self._registry)
        summary = await read_summary(
            self._reader,
            item.key,
            recent_limit=self.settings.roots_recent_limit,
            bump_filter=classify_bump,
            block_filter=thread_blocks.stage(),
        )
        return item.with_summary(summary)

    # -- stream plumbing -----------------------------------------------------

    async def _observe(
        self,
        operation: str,
        items: AsyncIterator[ResolvedItem],
        **fields: Any,
    ) -> AsyncIterator[ResolvedItem]:
        bound = log.bind(operation=operation, identity=self.identity, stream_id=new_stream_id())
        bound.info(f"{operation}.start", **fields)
        emitted = 0
        try:
            async with closing_source(items):
                async for item in items:
                    emitted += 1
                    yield item
        except ThreadfeedError as e:
            bound.warning(f"{operation}.failed", emitted=emitted, **e.to_dict())
            raise
        finally:
            bound.info(f"{operation}.end", emitted=emitted)

    # -- public operations ---------------------------------------------------

    def latest_stages(self, *, only_started: bool = False) -> list[Stage]:
        stages: list[Stage] = [
            filter_stage(self._not_own_new_thread),
            filter_stage(bump_filter),
            self._resolver.stage(),
        ]
        if only_started:
            stages.append(filter_stage(self._started_by_me))
        else:
            participants = ParticipantFilter(
                self.identity,
                reader=self._reader,
                recent_limit=self.settings.latest_recent_limit,
            )
            stages.append(participants.stage())
        return stages

    def latest(self, *, only_started: bool = False) -> Stream[ResolvedItem]:
        """Live stream of items bumping threads the identity takes part in."""
        source = self._log.open_feed_stream(live=True, old=False)
        items = compose(*self.latest_stages(only_started=only_started))(source)
        return Stream(self._observe("latest", items, only_started=only_started))

    def roots_stages(self, *, only_started: bool = False) -> list[Stage]:
        stages: list[Stage] = [
            filter_stage(bump_filter),
            self._resolver.stage(),
        ]
        if only_started:
            stages.append(filter_stage(self._started_by_me))
        stages += [
            BlockFilter(
                [self.identity],
                self._registry,
                use_root_author_blocks=True,
                check_root=True,
            ).stage(),
            unique_roots(),
            map_stage(ResolvedItem.as_root),
            async_map_stage(self._resolve_abouts),
            async_map_stage(self._attach_summary),
        ]
        if not only_started:
            # summary bumps are attached by now: no fallback read needed
            stages.append(ParticipantFilter(self.identity).stage())
        return stages

    def roots(
        self,
        *,
        reverse: bool = False,
        limit: int | None = None,
        resume: float | None = None,
        only_started: bool = False,
    ) -> Stream[ResolvedItem]:
        """One page of thread roots; the page-filling item carries ``resume``."""
        if limit is None:
            limit = self.settings.default_page_limit
        source = self._log.open_feed_stream(
            live=False,
            old=True,
            reverse=reverse,
            **pager_bounds(reverse, resume),
        )
        pager: ResumablePager[Message, ResolvedItem] = ResumablePager(
            source,
            filter_map=compose(*self.roots_stages(only_started=only_started)),
            limit=limit,
            get_resume=lambda message: message.receive_timestamp,
            set_resume=ResolvedItem.with_resume,
        )
        return Stream(
            self._observe(
                "roots",
                aiter(pager.stream()),
                reverse=reverse,
                limit=limit,
                resume=resume,
                only_started=only_started,
            )
        )


__all__ = ["ParticipatingFeed"]
