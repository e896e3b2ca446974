"""
Thread-root resolution and per-stream root deduplication.

``RootResolver`` attaches each message's thread root, reading through the
feed's shared ``RootCache`` and fetching from the log on a miss. Roots are
fixed points: a message without a root reference is its own root and is
never looked up. A failed fetch ends the stream with ``FetchFailedError``;
there is no default root.

``RootDeduplicator`` lets the first item of each thread through and drops
every later one for the lifetime of one stream.

Examples:
    >>> resolver = RootResolver(log, cache)
    >>> item = await resolver.resolve(reply)
    >>> item.root.key == reply.root_key
    True
    >>> stream.pipe(resolver.stage(), RootDeduplicator().stage())
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from threadfeed.core.cache import RootCache
from threadfeed.core.errors import FetchFailedError, wrap_error
from threadfeed.core.models import Message, ResolvedItem
from threadfeed.core.protocols import FeedLog
from threadfeed.framework.logging import get_logger
from threadfeed.streams.stream import Stage, async_map_stage, filter_stage

log = get_logger(__name__)


def as_item(value: Message | ResolvedItem) -> ResolvedItem:
    return value if isinstance(value, ResolvedItem) else ResolvedItem(value)


class RootResolver:
    """Attaches resolved roots, consulting the shared cache first."""

    def __init__(self, feed_log: FeedLog, cache: RootCache):
        self._log = feed_log
        self._cache = cache

    async def fetch_root(self, key: str) -> Message:
        root = self._cache.get(key)
        if root is not None:
            log.debug("root.cache_hit", key=key)
            return root

        log.debug("root.fetch", key=key)
        try:
            root = await self._log.get(key)
        except Exception as e:
            log.warning("root.fetch_failed", key=key, error=str(e))
            raise wrap_error(e, FetchFailedError, "root lookup failed", stage="resolve_root", key=key)
        self._cache.set(key, root)
        return root

    async def resolve(self, value: Message | ResolvedItem) -> ResolvedItem:
        item = as_item(value)
        root_key = item.message.root_key
        if root_key is None:
            return item
        return item.with_root(await self.fetch_root(root_key))

    def stage(self) -> Stage:
        return async_map_stage(self.resolve)


class RootDeduplicator:
    """Emits at most one item per thread root within one stream.

    Use a fresh instance (or ``stage()``) per stream: the seen-set is the
    stream's state and is never shared or persisted.
    """

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def first_seen(self, item: ResolvedItem) -> bool:
        root_key = item.root_key
        if root_key in self._seen:
            return False
        self._seen.add(root_key)
        return True

    def __len__(self) -> int:
        return len(self._seen)

    def stage(self) -> Stage:
        return filter_stage(self.first_seen)


def unique_roots() -> Stage:
    """Stage factory with its own, stream-local seen-set."""

    def stage(source: AsyncIterator[ResolvedItem]) -> AsyncIterator[ResolvedItem]:
        return RootDeduplicator().stage()(source)

    return stage
