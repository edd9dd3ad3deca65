"""
In-memory index of cached artifacts.

The index is built once at startup from the files in the store and is afterwards the only source of truth
for HIT/MISS decisions. All access goes through an asyncio lock, which is shared with the sweeper.
"""

import asyncio
import logging

from artifactcache.models import CacheEntry
from artifactcache.storage import LocalStore

DEFAULT_STAT_CONCURRENCY = 25


class CacheIndex:
    def __init__(self):
        self._entries: dict[str, CacheEntry] = {}
        self.lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    async def touch(self, key: str, last_modified: int) -> CacheEntry:
        async with self.lock:
            return self.set(key, last_modified)

    async def remove_if_older(self, key: str, cutoff: int) -> CacheEntry | None:
        """Remove the entry for key unless it was refreshed after cutoff in the meantime"""
        async with self.lock:
            return self.pop_if_older(key, cutoff)

    # Callers of set and pop_if_older must hold the lock

    def set(self, key: str, last_modified: int) -> CacheEntry:
        entry = CacheEntry(key=key, last_modified=last_modified)
        self._entries[key] = entry
        return entry

    def pop_if_older(self, key: str, cutoff: int) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None or entry.last_modified >= cutoff:
            return None
        return self._entries.pop(key)

    def snapshot(self) -> list[CacheEntry]:
        return list(self._entries.values())

    async def reconcile(self, store: LocalStore, concurrency: int = DEFAULT_STAT_CONCURRENCY) -> int:
        """
        Add every regular file in the store to the index, using its mtime as last_modified.

        At most `concurrency` files are inspected at the same time. A file that cannot be inspected is
        logged and skipped. Returns the number of artifacts found.
        """
        names = await store.list_names()
        sem = asyncio.Semaphore(max(1, concurrency))

        async def collect(name: str) -> CacheEntry | None:
            async with sem:
                try:
                    obj = await store.stat(name)
                except OSError as e:
                    logging.warning(f"Could not inspect {name} in {store.root}, skipping: {e}")
                    return None
            if not obj.is_file:
                return None
            return CacheEntry(key=name, last_modified=obj.mtime_ms)

        entries = await asyncio.gather(*(collect(name) for name in names))
        async with self.lock:
            for entry in entries:
                if entry is not None:
                    self._entries[entry.key] = entry
        found = sum(1 for e in entries if e is not None)
        logging.info(f"Indexed {found} artifacts in {store.root}")
        return found
