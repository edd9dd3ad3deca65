import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable

from artifactcache.cache_index import CacheIndex
from artifactcache.config import Settings, check_settings, get_settings
from artifactcache.models import now_ms
from artifactcache.storage import LocalStore
from artifactcache.sweeper import Sweeper


class ArtifactCache:
    """Everything a request needs: the store, the index mirroring it, and the sweeper that expires entries"""

    store: LocalStore
    index: CacheIndex
    sweeper: Sweeper
    token: str
    clock: Callable[[], int]

    def __init__(
        self, store: LocalStore, index: CacheIndex, sweeper: Sweeper, token: str, clock: Callable[[], int] = now_ms
    ):
        self.store = store
        self.index = index
        self.sweeper = sweeper
        self.token = token
        self.clock = clock


async def open_artifact_cache(settings: Settings, clock: Callable[[], int] = now_ms) -> ArtifactCache:
    """
    Prepare the storage directory, index the existing artifacts and run the initial cleanup.

    raises a ConfigError if the settings are not usable
    """
    token = check_settings(settings)

    logging.info(f"Using storageDir {settings.storage_dir}")
    store = LocalStore(settings.storage_dir)
    store.ensure()

    index = CacheIndex()
    await index.reconcile(store, concurrency=settings.stat_concurrency)

    sweeper = Sweeper(
        index,
        store,
        cache_days=settings.cache_days,
        cleanup_minutes=settings.cleanup_minutes,
        clock=clock,
    )
    await sweeper.maybe_sweep(force=True)
    return ArtifactCache(store=store, index=index, sweeper=sweeper, token=token, clock=clock)


@asynccontextmanager
async def artifact_cache(
    settings: Settings | None = None, clock: Callable[[], int] = now_ms
) -> AsyncGenerator[ArtifactCache, None]:
    """
    The main context manager to set up the cache used by the server.
    Use this once:
        - For running the server: in the FastAPI lifespan
        - For tests: in the setup fixture in the tests
    """
    cache = await open_artifact_cache(settings or get_settings(), clock=clock)
    try:
        yield cache
    finally:
        logging.info(f"Shutting down with {len(cache.index)} artifacts indexed")
