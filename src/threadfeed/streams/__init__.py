"""
Lazy async stream primitives: stages, Stream, ResumablePager.
"""

from threadfeed.streams.pager import ResumablePager, pager_bounds
from threadfeed.streams.stream import (
    SKIP,
    Stage,
    Stream,
    async_filter_stage,
    async_map_stage,
    closing_source,
    compose,
    filter_stage,
    map_stage,
    tap_stage,
)

__all__ = [
    "SKIP",
    "Stage",
    "Stream",
    "ResumablePager",
    "pager_bounds",
    "closing_source",
    "compose",
    "filter_stage",
    "async_filter_stage",
    "map_stage",
    "async_map_stage",
    "tap_stage",
]
