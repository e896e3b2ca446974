"""Bump classification: which messages count as activity on a thread.

Rules are evaluated in order and the first match wins; the order is part of
the contract (an attendee update that also says ``type: post`` is still
``attending``):

1. ``about`` update with a non-removing ``attendee`` → ``attending``
2. ``post`` → ``reply`` if it refers to a root, else ``post``
3. any other ``about`` → ``updated``
4. anything else → None (not a participation signal)
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from threadfeed.core.models import Bump, BumpKind, Message, ResolvedItem


def is_attendee(message: Message) -> bool:
    """True for an about update adding (not removing) an attendee."""
    attendee = message.content.get("attendee")
    if not attendee:
        return False
    if isinstance(attendee, Mapping) and attendee.get("remove"):
        return False
    return True


def classify_bump(message: Message) -> BumpKind | None:
    content_type = message.content_type
    # attendee beats post too
    if is_attendee(message) and content_type in ("about", "post"):
        return BumpKind.ATTENDING
    if content_type == "post":
        return BumpKind.REPLY if message.root_key else BumpKind.POST
    if content_type == "about":
        return BumpKind.UPDATED
    return None


def bump_filter(item: Message | ResolvedItem) -> bool:
    """Stream predicate: keep messages that classify as a bump."""
    message = item.message if isinstance(item, ResolvedItem) else item
    return classify_bump(message) is not None


def to_bump(message: Message) -> Bump | None:
    """Bump record for ``message``, or None if it is not a participation signal."""
    kind = classify_bump(message)
    if kind is None:
        return None
    return Bump(
        author=message.author,
        kind=kind,
        key=message.key,
        receive_timestamp=message.receive_timestamp,
    )


def describe(message: Message) -> dict[str, Any]:
    """Small dict for logs and the CLI."""
    kind = classify_bump(message)
    return {
        "key": message.key,
        "author": message.author,
        "type": message.content_type,
        "bump": kind.value if kind else None,
        "root": message.root_key,
    }
