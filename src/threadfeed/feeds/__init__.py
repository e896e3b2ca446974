"""
Feed pipelines: classification, root resolution, block and participation
filters, and the participating feed that composes them.
"""

from threadfeed.feeds.blocks import BlockFilter
from threadfeed.feeds.classify import bump_filter, classify_bump, is_attendee, to_bump
from threadfeed.feeds.participants import ParticipantFilter, is_participant, read_summary
from threadfeed.feeds.participating import ParticipatingFeed
from threadfeed.feeds.roots import RootDeduplicator, RootResolver, unique_roots

__all__ = [
    "classify_bump",
    "bump_filter",
    "is_attendee",
    "to_bump",
    "RootResolver",
    "RootDeduplicator",
    "unique_roots",
    "BlockFilter",
    "ParticipantFilter",
    "is_participant",
    "read_summary",
    "ParticipatingFeed",
]
