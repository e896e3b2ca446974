"""
threadfeed - participating-thread views over an append-only message log.
"""

__version__ = "0.1.0"

from threadfeed.core import *  # noqa
from threadfeed.feeds import ParticipatingFeed  # noqa: E402
from threadfeed.streams import ResumablePager, Stream  # noqa: E402
