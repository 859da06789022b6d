"""Distribution cache shared between evaluation sessions."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class DistributionCache:
    """Cache of ready-to-use distribution objects.

    Building a distribution can take seconds, so one cache is typically
    shared by every context created during a run (test suites especially).
    Entries are built lazily, at most once per key, and are safe to request
    from multiple threads.
    """

    def __init__(self, dest_dir: Path | None = None) -> None:
        self._dest_dir = dest_dir
        self._lock = threading.Lock()
        self._entries: dict[str, Any] = {}
        self._key_locks: dict[str, threading.Lock] = {}

    @property
    def dest_dir(self) -> Path | None:
        """Directory where distributions are materialized."""
        return self._dest_dir

    def get_or_create(self, key: str, factory: Callable[[Path | None], Any]) -> Any:
        """Return the entry for key, building it with factory on first use."""
        with self._lock:
            if key in self._entries:
                return self._entries[key]
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        # build outside the global lock so unrelated keys don't serialize
        with key_lock:
            with self._lock:
                if key in self._entries:
                    return self._entries[key]

            logger.debug("Building distribution '%s' in %s", key, self._dest_dir)
            value = factory(self._dest_dir)

            with self._lock:
                self._entries[key] = value
                self._key_locks.pop(key, None)

        return value

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:
        return f"DistributionCache(dest_dir={self._dest_dir}, entries={len(self)})"
