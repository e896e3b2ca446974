"""
Value types flowing through the feed pipelines.

Messages are immutable once logged. Pipeline stages never mutate an item:
attaching a resolved root, a thread summary or a resume cursor builds a new
``ResolvedItem`` with ``dataclasses.replace``.

Architecture:
    ::

        Message ──classify──► BumpKind | None
           │
           ▼
        ResolvedItem(message, root?, bumps, replies, reply_count, resume?)
                         ▲
                         └── ThreadSummary(bumps, replies, reply_count)

Examples:
    >>> msg = Message.from_dict({
    ...     "key": "%reply",
    ...     "value": {"author": "@bob", "content": {"type": "post", "root": "%root"}},
    ...     "rts": 2,
    ... })
    >>> msg.root_key
    '%root'
    >>> ResolvedItem(msg).root_message is msg
    True

Stdlib dataclasses only; settings are the only pydantic models.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any

MESSAGE_KEY_SIGIL = "%"


def is_message_key(value: Any) -> bool:
    """Return True for strings shaped like a message key (``%...``)."""
    return isinstance(value, str) and len(value) > 1 and value.startswith(MESSAGE_KEY_SIGIL)


class BumpKind(str, Enum):
    """Participation signal carried by a classified message."""

    ATTENDING = "attending"
    REPLY = "reply"
    POST = "post"
    UPDATED = "updated"


def _freeze(content: Any) -> Mapping[str, Any]:
    if not isinstance(content, Mapping):
        return MappingProxyType({})
    return MappingProxyType(dict(content))


# ---------------------------------------------------------------------------
# Message
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Message:
    """A logged message.

    Attributes:
        key: Opaque message id (``%...``).
        author: Identity id of the author (``@...``).
        content: Message content; ``content["type"]`` drives classification.
        receive_timestamp: Ordinal at which the local log received it.
            Also the resume cursor for paginated reads.
        timestamp: Author-claimed timestamp, informational only.
        about: Metadata attached by an abouts resolver, if any.
        ciphertext: Boxed content of an encrypted private message. Such
            messages carry empty ``content`` and never classify.
    """

    key: str
    author: str
    content: Mapping[str, Any] = field(default_factory=dict)
    receive_timestamp: float = 0
    timestamp: float | None = None
    about: Mapping[str, Any] | None = None
    ciphertext: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.content, str):
            object.__setattr__(self, "ciphertext", self.content)
        object.__setattr__(self, "content", _freeze(self.content))

    @property
    def is_encrypted(self) -> bool:
        return self.ciphertext is not None

    @property
    def content_type(self) -> str | None:
        value = self.content.get("type")
        return value if isinstance(value, str) else None

    @property
    def root_key(self) -> str | None:
        """Key of the thread root this message refers to, if any.

        ``content.root`` wins; an ``about`` message whose ``about`` target is
        a message key belongs to that message's thread.
        """
        root = self.content.get("root")
        if is_message_key(root):
            return root
        if self.content_type == "about" and is_message_key(self.content.get("about")):
            return self.content["about"]
        return None

    def with_about(self, about: Mapping[str, Any]) -> Message:
        """Return a copy carrying resolved about metadata."""
        return replace(self, about=MappingProxyType(dict(about)))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Message:
        """Build a Message from a log record.

        Accepts the nested ``{"key", "value": {"author", "content", "timestamp"},
        "rts"}`` shape as well as a flat ``{"key", "author", "content",
        "receive_timestamp"}`` one.
        """
        value = data.get("value") or data
        rts = data.get("rts", data.get("receive_timestamp", data.get("timestamp", 0)))
        return cls(
            key=data["key"],
            author=value["author"],
            content=value.get("content") or {},
            receive_timestamp=rts,
            timestamp=value.get("timestamp"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Nested log-record shape, the inverse of ``from_dict``."""
        content: Any = self.ciphertext if self.is_encrypted else dict(self.content)
        value: dict[str, Any] = {"author": self.author, "content": content}
        if self.timestamp is not None:
            value["timestamp"] = self.timestamp
        result: dict[str, Any] = {"key": self.key, "value": value, "rts": self.receive_timestamp}
        if self.about is not None:
            result["about"] = dict(self.about)
        return result


# ---------------------------------------------------------------------------
# Bumps and summaries
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Bump:
    """Renewed activity on a thread attributable to an author.

    Attributes:
        author: Identity that caused the bump.
        kind: What kind of activity it was.
        key: Key of the bumping message, if known.
        receive_timestamp: When the bump was received, if known.
    """

    author: str
    kind: BumpKind
    key: str | None = None
    receive_timestamp: float | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"author": self.author, "kind": self.kind.value}
        if self.key is not None:
            result["key"] = self.key
        if self.receive_timestamp is not None:
            result["rts"] = self.receive_timestamp
        return result


@dataclass(frozen=True, slots=True)
class ThreadSummary:
    """Bounded summary of a thread's recent activity.

    Attributes:
        bumps: Most-recent-first bumps.
        replies: Up to ``recent_limit`` most recent replies, oldest first.
        reply_count: Total replies seen in the thread.
    """

    bumps: tuple[Bump, ...] = ()
    replies: tuple[Message, ...] = ()
    reply_count: int = 0


# ---------------------------------------------------------------------------
# ResolvedItem
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ResolvedItem:
    """A message plus whatever the pipeline has attached to it.

    ``root`` is None when the message is itself a thread root; use
    :attr:`root_message` to get the effective root either way.

    Attributes:
        message: The underlying logged message.
        root: Resolved thread root, absent for roots.
        bumps: Attached bump history (most-recent-first).
        replies: Attached recent replies.
        reply_count: Attached total reply count.
        resume: Resume cursor, set on the last item of a page.
    """

    message: Message
    root: Message | None = None
    bumps: tuple[Bump, ...] = ()
    replies: tuple[Message, ...] = ()
    reply_count: int = 0
    resume: float | None = None

    @property
    def key(self) -> str:
        return self.message.key

    @property
    def author(self) -> str:
        return self.message.author

    @property
    def root_message(self) -> Message:
        return self.root if self.root is not None else self.message

    @property
    def root_key(self) -> str:
        return self.root_message.key

    def with_root(self, root: Message) -> ResolvedItem:
        return replace(self, root=root)

    def with_summary(self, summary: ThreadSummary) -> ResolvedItem:
        return replace(
            self,
            bumps=tuple(summary.bumps),
            replies=tuple(summary.replies),
            reply_count=summary.reply_count,
        )

    def with_resume(self, resume: float | None) -> ResolvedItem:
        return replace(self, resume=resume)

    def as_root(self) -> ResolvedItem:
        """Project onto the thread root, dropping everything attached."""
        return ResolvedItem(self.root_message)

    def to_dict(self) -> dict[str, Any]:
        result = self.message.to_dict()
        if self.root is not None:
            result["root"] = self.root.to_dict()
        if self.bumps:
            result["bumps"] = [bump.to_dict() for bump in self.bumps]
        if self.replies:
            result["replies"] = [reply.to_dict() for reply in self.replies]
            result["reply_count"] = self.reply_count
        if self.resume is not None:
            result["resume"] = self.resume
        return result


__all__ = [
    "MESSAGE_KEY_SIGIL",
    "is_message_key",
    "BumpKind",
    "Message",
    "Bump",
    "ThreadSummary",
    "ResolvedItem",
]
