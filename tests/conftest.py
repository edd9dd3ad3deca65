import pytest
from httpx import ASGITransport, AsyncClient

from artifactcache import api
from artifactcache.cache import artifact_cache
from artifactcache.config import Settings
from tests.tools import TEST_TOKEN, FakeClock

START_MS = 1_700_000_000_000


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def clock():
    return FakeClock(START_MS)


@pytest.fixture()
def storage_dir(tmp_path):
    return tmp_path / "remote-cache"


@pytest.fixture()
def settings(storage_dir):
    return Settings(storage_dir=storage_dir, turbo_token=TEST_TOKEN, cache_days=7, cleanup_minutes=5)


@pytest.fixture()
async def cache(settings, clock):
    async with artifact_cache(settings, clock=clock) as cache:
        api.app.state.cache = cache
        yield cache
        api.app.state.cache = None


@pytest.fixture()
async def client(cache):
    async with AsyncClient(transport=ASGITransport(app=api.app), base_url="http://test", follow_redirects=False) as client:
        yield client
