"""Bounded LRU cache of live connections.

Keys are target cache keys (``tcp:host:port``, ``unix:/abs/path``,
``pipe:/abs/prog args``). The cache owns every connection it holds: removing
an entry, whether by ``invalidate`` or by LRU eviction, closes it. Closing a
pipe connection also reaps the child process if it has exited.
"""

import logging
import threading
from collections import OrderedDict
from typing import Callable

from .transport import RiapConnection

logger = logging.getLogger("riap-tools")


class ConnectionCache:
    """Thread-safe, fixed-capacity LRU map of cache key to connection."""

    def __init__(self, capacity: int = 32):
        if capacity < 1:
            raise ValueError(f"Cache capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._entries: OrderedDict[str, RiapConnection] = OrderedDict()
        self._lock = threading.RLock()
        # Serializes connection setup per key; the map lock is never held
        # across a connect or spawn.
        self._creating: dict[str, threading.Lock] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        with self._lock:
            return list(self._entries)

    def get(self, key: str) -> RiapConnection | None:
        """Return the entry for ``key`` and mark it most recently used."""
        with self._lock:
            conn = self._entries.get(key)
            if conn is not None:
                self._entries.move_to_end(key)
            return conn

    def put(self, key: str, conn: RiapConnection) -> None:
        """Insert ``conn``, closing whatever it replaces or evicts."""
        with self._lock:
            old = self._entries.pop(key, None)
            if old is not None and old is not conn:
                old.close()
            self._entries[key] = conn
            while len(self._entries) > self.capacity:
                evicted_key, evicted = self._entries.popitem(last=False)
                logger.info(f"Connection cache full, evicting {evicted_key}")
                self._creating.pop(evicted_key, None)
                evicted.close()

    def invalidate(self, key: str, conn: RiapConnection | None = None) -> None:
        """Remove ``key`` and release its resources. Missing keys are ignored.

        If ``conn`` is given, the entry is removed only while it still is
        ``conn``; ``conn`` itself is closed regardless.
        """
        with self._lock:
            cached = self._entries.get(key)
            if cached is not None and (conn is None or cached is conn):
                del self._entries[key]
                conn = cached
        if conn is not None:
            conn.close()

    def invalidate_all(self) -> None:
        """Remove and release every entry."""
        with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
        for conn in entries:
            conn.close()

    def get_or_create(
        self,
        key: str,
        factory: Callable[[], RiapConnection],
    ) -> tuple[RiapConnection, bool]:
        """Return a live connection for ``key``, creating it if needed.

        A cached entry that fails its liveness check is invalidated and
        replaced. Concurrent callers for the same key wait for one another,
        so they never open two connections for it. ``factory`` runs without
        the cache lock, so a slow connect only delays callers of its own key.

        Returns:
            ``(connection, created)``

        Raises:
            Whatever ``factory`` raises; the cache is left without an entry
            for ``key`` in that case.
        """
        with self._lock:
            key_lock = self._creating.setdefault(key, threading.Lock())

        with key_lock:
            with self._lock:
                conn = self.get(key)
                if conn is not None:
                    if _is_alive(conn):
                        logger.debug(f"Reusing cached connection {key}")
                        return conn, False
                    logger.info(f"Stale cached connection ({key}), discarded")
                    del self._entries[key]
            if conn is not None:
                conn.close()
            conn = factory()
            self.put(key, conn)
            return conn, True


def _is_alive(conn: RiapConnection) -> bool:
    # A connection busy with another caller's exchange has response bytes in
    # flight; probing it would misread them as a dead peer.
    if not conn.lock.acquire(blocking=False):
        return True
    try:
        return conn.is_alive()
    finally:
        conn.lock.release()
