"""
Dropping items whose author (or thread root author) is blocked.

A ``BlockFilter`` is built for a list of identities whose blocks apply.
For each item:

- if any of those identities blocks the item's author, the item is dropped;
- with ``use_root_author_blocks`` the thread root's author joins that list
  for the item, so a root author's blocks protect their own thread;
- with ``check_root`` the item is also dropped when any of them blocks the
  root's author, so threads started by a blocked identity never show up
  however they were bumped.

The feed uses it twice: once at pipeline level for the local identity
(root-aware), and once per thread inside summarisation for the item author
plus the local identity.

Examples:
    >>> blocks = BlockFilter(["@me"], registry, use_root_author_blocks=True, check_root=True)
    >>> await blocks.allows(item)
    False
    >>> stream.pipe(blocks.stage())
"""

from __future__ import annotations

import inspect
from collections.abc import Iterable

from threadfeed.core.errors import BlockCheckFailedError, wrap_error
from threadfeed.core.models import ResolvedItem
from threadfeed.core.protocols import BlockRegistry
from threadfeed.framework.logging import get_logger
from threadfeed.streams.stream import Stage, async_filter_stage

log = get_logger(__name__)


class BlockFilter:
    """Predicate stage eliminating items by blocked authorship."""

    def __init__(
        self,
        authors: Iterable[str | None],
        registry: BlockRegistry,
        *,
        use_root_author_blocks: bool = False,
        check_root: bool = False,
    ):
        # unknown authors (e.g. an item with no author) simply don't block
        self.authors = tuple(dict.fromkeys(a for a in authors if a))
        self._registry = registry
        self.use_root_author_blocks = use_root_author_blocks
        self.check_root = check_root

    async def is_blocking(self, source: str, dest: str) -> bool:
        try:
            result = self._registry.is_blocking(source, dest)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            log.warning("blocks.check_failed", source=source, dest=dest, error=str(e))
            raise wrap_error(
                e,
                BlockCheckFailedError,
                "block lookup failed",
                stage="block_filter",
                identity=source,
                dest=dest,
            )
        return bool(result)

    async def _any_blocks(self, sources: Iterable[str], dest: str) -> bool:
        for source in sources:
            if await self.is_blocking(source, dest):
                return True
        return False

    async def allows(self, item: ResolvedItem) -> bool:
        sources = list(self.authors)
        root = item.root
        if self.use_root_author_blocks and root is not None and root.author not in sources:
            sources.append(root.author)

        if await self._any_blocks(sources, item.author):
            log.debug("blocks.drop_author", key=item.key, author=item.author)
            return False

        if self.check_root and root is not None and await self._any_blocks(sources, root.author):
            log.debug("blocks.drop_root", key=item.key, root_author=root.author)
            return False

        return True

    def stage(self) -> Stage:
        return async_filter_stage(self.allows)

    def __repr__(self) -> str:
        return (
            f"BlockFilter(authors={list(self.authors)}, "
            f"use_root_author_blocks={self.use_root_author_blocks}, check_root={self.check_root})"
        )
