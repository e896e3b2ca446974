"""
Core primitives for threadfeed: value types, errors, cache, protocols, settings.
"""

from threadfeed.core.cache import DEFAULT_ROOT_CACHE_SIZE, RootCache
from threadfeed.core.errors import (
    BlockCheckFailedError,
    ConfigError,
    ErrorCategory,
    ErrorContext,
    FetchFailedError,
    MessageNotFoundError,
    SummaryFailedError,
    ThreadfeedError,
    wrap_error,
)
from threadfeed.core.models import (
    Bump,
    BumpKind,
    Message,
    ResolvedItem,
    ThreadSummary,
    is_message_key,
)
from threadfeed.core.protocols import (
    AboutsResolver,
    BlockRegistry,
    BumpClassifier,
    FeedLog,
    ItemStage,
    ThreadReader,
)
from threadfeed.core.settings import FeedSettings, get_settings, reset_settings

__all__ = [
    # Models
    "Message",
    "Bump",
    "BumpKind",
    "ResolvedItem",
    "ThreadSummary",
    "is_message_key",
    # Cache
    "RootCache",
    "DEFAULT_ROOT_CACHE_SIZE",
    # Errors
    "ThreadfeedError",
    "ErrorCategory",
    "ErrorContext",
    "FetchFailedError",
    "MessageNotFoundError",
    "SummaryFailedError",
    "BlockCheckFailedError",
    "ConfigError",
    "wrap_error",
    # Protocols
    "FeedLog",
    "BlockRegistry",
    "ThreadReader",
    "AboutsResolver",
    "BumpClassifier",
    "ItemStage",
    # Settings
    "FeedSettings",
    "get_settings",
    "reset_settings",
]
