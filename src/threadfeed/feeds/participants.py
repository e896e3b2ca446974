"""
Has the local identity taken part in a thread?

Two-phase check:

1. Cheap, local: the item's own author is the local identity, or one of the
   bumps already attached to it is.
2. Fallback: ask the thread summarizer for the root's bump history
   (``recent_limit`` replies, 0 by default since only bumps matter) and apply
   the same rules to the summary. Still no match → the thread is dropped.

Without a ``reader`` only phase 1 runs; that is what "roots" uses once the
full summary has already been attached.

Examples:
    >>> is_participant(item, "@me")
    True
    >>> participants = ParticipantFilter("@me", reader=reader, bump_filter=classify_bump)
    >>> stream.pipe(participants.stage())
"""

from __future__ import annotations

from collections.abc import Iterable

from threadfeed.core.errors import SummaryFailedError, wrap_error
from threadfeed.core.models import Bump, ResolvedItem, ThreadSummary
from threadfeed.core.protocols import BumpClassifier, ItemStage, ThreadReader
from threadfeed.feeds.classify import classify_bump
from threadfeed.framework.logging import get_logger
from threadfeed.streams.stream import SKIP, Stage, async_map_stage, filter_stage

log = get_logger(__name__)


def bumped_by(bumps: Iterable[Bump], identity: str) -> bool:
    return any(bump.author == identity for bump in bumps)


def is_participant(item: ResolvedItem | ThreadSummary, identity: str) -> bool:
    """Phase-1 check on an item, or the same bump rule on a summary."""
    if isinstance(item, ResolvedItem) and item.author == identity:
        return True
    return bumped_by(item.bumps, identity)


async def read_summary(
    reader: ThreadReader,
    root_key: str,
    *,
    recent_limit: int,
    bump_filter: BumpClassifier = classify_bump,
    block_filter: ItemStage | None = None,
) -> ThreadSummary:
    """Call the thread summarizer, surfacing failures as SummaryFailedError."""
    try:
        return await reader.read_thread(
            root_key,
            recent_limit=recent_limit,
            bump_filter=bump_filter,
            block_filter=block_filter,
        )
    except Exception as e:
        log.warning("summary.read_failed", root=root_key, error=str(e))
        raise wrap_error(e, SummaryFailedError, "thread summary failed", stage="summary", key=root_key)


class ParticipantFilter:
    """Keeps items from threads the local identity participates in.

    Attributes:
        identity: Local identity.
        reader: Thread summarizer for the fallback; None disables it.
        recent_limit: recentLimit passed to the summarizer.
        summary_reads: Number of fallback reads performed.
    """

    def __init__(
        self,
        identity: str,
        *,
        reader: ThreadReader | None = None,
        recent_limit: int = 0,
        bump_filter: BumpClassifier = classify_bump,
    ):
        self.identity = identity
        self.reader = reader
        self.recent_limit = recent_limit
        self.bump_filter = bump_filter
        self.summary_reads = 0

    def participates(self, item: ResolvedItem) -> bool:
        return is_participant(item, self.identity)

    async def check(self, item: ResolvedItem) -> ResolvedItem | object:
        """Return the item if the identity participates, else ``SKIP``."""
        if self.participates(item):
            return item
        if self.reader is None:
            return SKIP

        root_key = item.root_key
        self.summary_reads += 1
        log.debug("participant.summary_fallback", key=item.key, root=root_key)
        summary = await read_summary(
            self.reader,
            root_key,
            recent_limit=self.recent_limit,
            bump_filter=self.bump_filter,
        )
        if is_participant(summary, self.identity):
            return item
        log.debug("participant.drop", key=item.key, root=root_key)
        return SKIP

    def stage(self) -> Stage:
        if self.reader is None:
            return filter_stage(self.participates)
        return async_map_stage(self.check)
