"""
Bounded LRU cache of resolved thread roots.

One ``RootCache`` is owned by each feed instance and handed by reference to
every root-resolving stage, so ``latest`` and ``roots`` streams of the same
instance share it while separate instances (e.g. per test) stay isolated.
It is a pure latency optimisation: a cold or absent cache changes how often
the log is read, never what a stream emits.

Architecture:
    ::

        RootCache
        └── OrderedDict[key → Message]   oldest access first

        API: get(key) → Message | None     (refreshes recency)
             set(key, message)             (evicts LRU past capacity)
             exists(key) → bool            (does not refresh)
             size() → int

Examples:
    >>> cache = RootCache(max_size=2)
    >>> cache.set("%a", msg_a)
    >>> cache.set("%b", msg_b)
    >>> cache.get("%a") is msg_a
    True
    >>> cache.set("%c", msg_c)      # evicts %b, the least recently used
    >>> cache.exists("%b")
    False

Guardrails:
    ❌ DON'T: Share one cache between pipelines scheduled concurrently
    ✅ DO: Rely on the single-in-flight-item model; there is no locking

    ❌ DON'T: Treat a miss as an error
    ✅ DO: Fetch from the log, then ``set``
"""

from __future__ import annotations

from collections import OrderedDict

from threadfeed.core.errors import ConfigError
from threadfeed.core.models import Message

DEFAULT_ROOT_CACHE_SIZE = 100


class RootCache:
    """Bounded in-memory cache with least-recently-used eviction.

    Attributes:
        max_size: Maximum number of roots before LRU eviction.
    """

    def __init__(self, *, max_size: int = DEFAULT_ROOT_CACHE_SIZE):
        if max_size < 1:
            raise ConfigError(f"RootCache max_size must be >= 1, got {max_size}")
        self._store: OrderedDict[str, Message] = OrderedDict()
        self._max_size = max_size
        self.hits = 0
        self.misses = 0

    @property
    def max_size(self) -> int:
        return self._max_size

    def get(self, key: str) -> Message | None:
        """Return the cached root for ``key``, marking it most recent."""
        message = self._store.get(key)
        if message is None:
            self.misses += 1
            return None
        self._store.move_to_end(key)
        self.hits += 1
        return message

    def set(self, key: str, message: Message) -> None:
        """Store a root, evicting the least recently used past capacity."""
        self._store[key] = message
        self._store.move_to_end(key)
        while len(self._store) > self._max_size:
            self._store.popitem(last=False)

    def exists(self, key: str) -> bool:
        return key in self._store

    def size(self) -> int:
        """Return current number of cached roots."""
        return len(self._store)

    def __len__(self) -> int:
        return len(self._store)

    def __repr__(self) -> str:
        return f"RootCache(size={len(self._store)}, max_size={self._max_size})"
