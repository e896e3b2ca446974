"""
Structured error types for threadfeed.

Every failure that can end a feed stream is a ``ThreadfeedError`` carrying a
category, retry semantics, structured context and the chained cause. Stages
never swallow or retry these: the error terminates the consumer's stream and
anything already emitted stays valid.

Architecture:
    ::

        ThreadfeedError  (category, retryable, context, cause)
        ├── FetchFailedError        root / abouts resolution failed
        │   └── MessageNotFoundError   fetch-by-key for an unknown key
        ├── SummaryFailedError      thread summarizer failed
        ├── BlockCheckFailedError   blocking registry failed
        └── ConfigError             invalid stream options

Filtering decisions (blocked author, duplicate root, non-participant,
unclassified message) and cache misses are control flow, not errors.

Examples:
    >>> err = MessageNotFoundError("no such message").with_context(key="%abc")
    >>> err.context.key
    '%abc'
    >>> err.to_dict()["category"]
    'SOURCE'

Usage:
    from threadfeed.core.errors import FetchFailedError, wrap_error

    try:
        root = await log.get(key)
    except Exception as e:
        raise wrap_error(e, FetchFailedError, "root lookup failed", key=key)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    SOURCE = "SOURCE"  # Log, registry, summarizer or abouts collaborator
    CONFIG = "CONFIG"  # Invalid options or settings
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        stage: Pipeline stage that raised (e.g. ``"resolve_root"``)
        operation: Public operation (``"latest"`` or ``"roots"``)
        key: Message key involved, if any
        identity: Identity involved (author, blocker), if any
        metadata: Additional key-value pairs
    """

    stage: str | None = None
    operation: str | None = None
    key: str | None = None
    identity: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for name in ["stage", "operation", "key", "identity"]:
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ThreadfeedError(Exception):
    """
    Base exception for all threadfeed errors.

    Subclasses set ``default_category``. Nothing in the pipeline retries, so
    ``retryable`` defaults to False everywhere; it is kept so callers that do
    own a retry policy can make the decision.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ThreadfeedError:
        """
        Add context to this error (fluent API).

        Usage:
            raise SummaryFailedError("read failed").with_context(key=root_key)
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class FetchFailedError(ThreadfeedError):
    """A referenced message (root or abouts target) could not be retrieved."""

    default_category = ErrorCategory.SOURCE


class MessageNotFoundError(FetchFailedError):
    """Fetch-by-key was given a key the log does not know."""

    def __init__(self, message: str = "Message not found", *, key: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        if key is not None:
            self.context.key = key


class SummaryFailedError(ThreadfeedError):
    """The external thread summarizer errored."""

    default_category = ErrorCategory.SOURCE


class BlockCheckFailedError(ThreadfeedError):
    """The blocking registry lookup errored."""

    default_category = ErrorCategory.SOURCE


class ConfigError(ThreadfeedError):
    """Invalid stream options or settings."""

    default_category = ErrorCategory.CONFIG


def wrap_error(
    error: BaseException,
    kind: type[ThreadfeedError],
    message: str,
    **context: Any,
) -> ThreadfeedError:
    """
    Return ``error`` unchanged if it is already a ThreadfeedError,
    otherwise a new ``kind`` error chaining it as the cause.

    Context is only added to freshly wrapped errors so the collaborator's
    own context survives propagation.
    """
    if isinstance(error, ThreadfeedError):
        return error
    return kind(f"{message}: {error}", cause=error).with_context(**context)


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ThreadfeedError",
    "FetchFailedError",
    "MessageNotFoundError",
    "SummaryFailedError",
    "BlockCheckFailedError",
    "ConfigError",
    "wrap_error",
]
