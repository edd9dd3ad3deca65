"""
Removal of expired artifacts.

A sweep is throttled (at most once per `cleanup_minutes`) and single-flight (at most one running at a time).
It is cheap to call maybe_sweep on every request: when a sweep is not due it returns immediately.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from artifactcache.cache_index import CacheIndex
from artifactcache.models import now_ms
from artifactcache.storage import LocalStore

MINUTE_MS = 60 * 1000
DAY_MS = 24 * 60 * MINUTE_MS


@dataclass
class SweepState:
    last_sweep_at: int
    running: bool = False


class Sweeper:
    def __init__(
        self,
        index: CacheIndex,
        store: LocalStore,
        cache_days: float = 7,
        cleanup_minutes: float = 5,
        clock: Callable[[], int] = now_ms,
    ):
        self.index = index
        self.store = store
        self.max_age_ms = int(cache_days * DAY_MS)
        self.interval_ms = int(cleanup_minutes * MINUTE_MS)
        self.clock = clock
        self.state = SweepState(last_sweep_at=clock())

    async def _start(self, force: bool) -> int | None:
        """Claim the sweep if it is due, returning the start time, or None if another sweep should not start"""
        async with self.index.lock:
            now = self.clock()
            if self.state.running:
                return None
            if not force and now - self.state.last_sweep_at < self.interval_ms:
                return None
            self.state.running = True
            self.state.last_sweep_at = now
            return now

    async def maybe_sweep(self, force: bool = False) -> bool:
        """
        Remove all artifacts older than the maximum age, if a sweep is due.

        With force=True the interval is ignored, but a sweep that is already running is never joined.
        Returns True if this call performed a sweep.
        """
        started = await self._start(force)
        if started is None:
            return False
        try:
            cutoff = started - self.max_age_ms
            logging.info("Cleaning up old artifacts")
            removed = 0
            for entry in self.index.snapshot():
                if entry.last_modified >= cutoff:
                    continue
                logging.info(f"Cleaning up old artifact {entry.key}, lastModified: {entry.last_modified}")
                # Uploads commit under the same lock, so entry and file are removed together
                async with self.index.lock:
                    if self.index.pop_if_older(entry.key, cutoff) is None:
                        continue
                    removed += 1
                    try:
                        await self.store.delete(entry.key)
                    except Exception as e:
                        logging.error(f"Failed to clean up artifact {entry.key}: {e}")
            if removed:
                logging.info(f"Removed {removed} expired artifacts, {len(self.index)} remaining")
            return True
        finally:
            self.state.running = False
