"""Thread-safe, value-keyed memoisation for derived inference structures.

Keys are plain hashable values built from content (network signatures,
canonical evidence tuples, node sets), never object identities, so two
structurally equal inputs share an entry and a mutated-then-reused input
cannot hit a stale one.

A computation for a given key runs at most once at a time: concurrent
callers asking for the same key wait on a per-key lock and then read the
stored value.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Callable, Dict, Generic, Hashable, NamedTuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheInfo(NamedTuple):
    hits: int
    misses: int
    maxsize: int
    currsize: int


class ComputeOnceCache(Generic[T]):
    """Bounded LRU cache whose entries are computed once under a lock.

    Parameters
    ----------
    name : str
        Label used in log messages.
    maxsize : int
        Maximum number of entries kept; the least recently used entry is
        evicted first.
    """

    def __init__(self, name: str, maxsize: int = 128) -> None:
        if maxsize < 1:
            raise ValueError(f"maxsize must be >= 1, got {maxsize}")
        self.name = name
        self.maxsize = maxsize
        self._entries: "OrderedDict[Hashable, T]" = OrderedDict()
        self._key_locks: Dict[Hashable, threading.Lock] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def _lookup(self, key: Hashable):
        # Caller holds self._lock
        if key in self._entries:
            self._entries.move_to_end(key)
            self._hits += 1
            return True, self._entries[key]
        return False, None

    def get_or_compute(self, key: Hashable, compute: Callable[[], T]) -> T:
        """Return the entry for *key*, computing it with *compute* if absent."""
        with self._lock:
            found, value = self._lookup(key)
            if found:
                logger.debug("%s cache hit", self.name)
                return value
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        with key_lock:
            with self._lock:
                found, value = self._lookup(key)
                if found:
                    return value
                self._misses += 1
            try:
                value = compute()
                with self._lock:
                    self._entries[key] = value
                    while len(self._entries) > self.maxsize:
                        self._entries.popitem(last=False)
            finally:
                with self._lock:
                    self._key_locks.pop(key, None)
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def cache_info(self) -> CacheInfo:
        with self._lock:
            return CacheInfo(
                self._hits, self._misses, self.maxsize, len(self._entries)
            )

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
