"""Signal persistence (debounce) state machine.

Keeps one history entry per (asset, timeframe):

- same direction as stored  -> confirmation_count += 1
- different direction        -> reset to {direction, 1}

A directional signal is only eligible once the count reaches the
persistence threshold (3 by default), which stops rapid flip-flopping.

The store is the only shared mutable state of the engine. Evaluations of
several timeframes of the same asset may run concurrently on a worker
pool, so every key has its own lock. State lives for the process lifetime;
losing it on restart only delays the next confirmation.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable

from signal_core.models.signal import Direction

logger = logging.getLogger(__name__)

DEFAULT_PERSISTENCE_THRESHOLD = 3


@dataclass(slots=True)
class SignalHistoryEntry:
    """Stored direction and how many consecutive reads confirmed it."""

    direction: Direction
    confirmation_count: int
    last_updated_at: float


class SignalHistoryStore:
    """Keyed store of signal history entries with per-key locking.

    Parameters
    ----------
    clock : callable
        Returns the current Unix time; injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: dict[tuple[str, str], SignalHistoryEntry] = {}
        self._locks: dict[tuple[str, str], threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @staticmethod
    def _key(asset: str, timeframe: str) -> tuple[str, str]:
        return (asset, timeframe)

    def _lock_for(self, key: tuple[str, str]) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def record(self, asset: str, timeframe: str, direction: Direction) -> SignalHistoryEntry:
        """Apply one directional read and return the updated state.

        Returns:
            A copy of the entry after the transition (later reads do not
            mutate it)
        """
        key = self._key(asset, timeframe)
        with self._lock_for(key):
            now = self._clock()
            entry = self._entries.get(key)

            if entry is not None and entry.direction == direction:
                entry.confirmation_count += 1
                entry.last_updated_at = now
            else:
                if entry is not None:
                    logger.debug(
                        f"Direction change for {asset} {timeframe}: {entry.direction.value} -> "
                        f"{direction.value} after {entry.confirmation_count} reads"
                    )
                entry = SignalHistoryEntry(
                    direction=direction,
                    confirmation_count=1,
                    last_updated_at=now,
                )
                self._entries[key] = entry

            return replace(entry)

    def get(self, asset: str, timeframe: str) -> SignalHistoryEntry | None:
        """Get a copy of the stored entry, or None if never recorded."""
        key = self._key(asset, timeframe)
        with self._lock_for(key):
            entry = self._entries.get(key)
            return replace(entry) if entry is not None else None

    def is_confirmed(
        self,
        asset: str,
        timeframe: str,
        threshold: int = DEFAULT_PERSISTENCE_THRESHOLD,
    ) -> bool:
        entry = self.get(asset, timeframe)
        return entry is not None and entry.confirmation_count >= threshold

    def reset(self, asset: str | None = None, timeframe: str | None = None) -> None:
        """Forget history.

        Each key is cleared under its own lock, so a record() in flight for
        that key finishes first and cannot write the entry back afterwards.

        Args:
            asset: Only this asset (all timeframes unless ``timeframe`` is given)
            timeframe: Only this timeframe of ``asset``
        """
        if timeframe is not None and asset is not None:
            keys = [self._key(asset, timeframe)]
        else:
            keys = [k for k in list(self._entries) if asset is None or k[0] == asset]

        for key in keys:
            with self._lock_for(key):
                self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
