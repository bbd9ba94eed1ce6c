"""Per-column critical sections for position reindexing."""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Iterator

from loguru import logger

from ..config import ConcurrencySettings
from ..errors import ConcurrencyConflict

ColumnKey = tuple[str, str]


class ColumnLocks:
    """In-process locks keyed by ``(board_id, column_id)``.

    Locks for several columns are always taken in ascending key order so two
    opposite cross-column moves cannot deadlock.  Each acquisition is
    bounded by ``lock_timeout_seconds``; a timed-out attempt releases what it
    holds, backs off exponentially and retries up to ``move_retries`` times.
    """

    def __init__(self, settings: ConcurrencySettings | None = None) -> None:
        self.settings = settings or ConcurrencySettings()
        self._guard = threading.Lock()
        self._locks: dict[ColumnKey, threading.Lock] = {}

    def _lock_for(self, key: ColumnKey) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def _try_acquire_all(self, keys: list[ColumnKey]) -> list[threading.Lock] | None:
        held: list[threading.Lock] = []
        for key in keys:
            lock = self._lock_for(key)
            if not lock.acquire(timeout=self.settings.lock_timeout_seconds):
                for acquired in reversed(held):
                    acquired.release()
                return None
            held.append(lock)
        return held

    @contextmanager
    def hold(self, *keys: ColumnKey) -> Iterator[None]:
        ordered = sorted(set(keys))
        delay = self.settings.backoff_seconds
        held: list[threading.Lock] | None = None
        for attempt in range(1, self.settings.move_retries + 1):
            held = self._try_acquire_all(ordered)
            if held is not None:
                break
            logger.warning(
                "Column lock contention on {} (attempt {}/{})",
                ordered,
                attempt,
                self.settings.move_retries,
            )
            if attempt < self.settings.move_retries:
                time.sleep(delay)
                delay *= 2
        if held is None:
            raise ConcurrencyConflict(
                "Could not acquire column locks; please retry",
                details={"columns": [list(k) for k in ordered]},
            )
        try:
            yield
        finally:
            for lock in reversed(held):
                lock.release()
