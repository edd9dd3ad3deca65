from pathlib import Path

import pytest

from artifactcache.cache import artifact_cache
from artifactcache.config import ConfigError, Settings, check_settings, get_settings, validate_settings
from tests.tools import write_file

ENV_VARS = ["STORAGE_DIR", "PORT", "TURBO_TOKEN", "CACHE_DAYS", "CLEANUP_MINUTES", "STAT_CONCURRENCY", "ENV_FILE"]


@pytest.fixture()
def clean_env(monkeypatch, tmp_path):
    # setenv first, so that monkeypatch also removes whatever load_dotenv adds during the test
    for var in ENV_VARS:
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults(clean_env, tmp_path):
    settings = Settings()
    assert settings.port == 3939
    assert settings.turbo_token is None
    assert settings.cache_days == 7
    assert settings.cleanup_minutes == 5
    assert settings.stat_concurrency == 25
    assert settings.storage_dir == Path(tmp_path / "remote-cache").resolve()
    assert settings.storage_dir.is_absolute()


def test_environment(clean_env, monkeypatch):
    monkeypatch.setenv("TURBO_TOKEN", "from-env")
    monkeypatch.setenv("CACHE_DAYS", "3")
    monkeypatch.setenv("CLEANUP_MINUTES", "0.5")
    monkeypatch.setenv("PORT", "8080")
    settings = Settings()
    assert settings.turbo_token == "from-env"
    assert settings.cache_days == 3
    assert settings.cleanup_minutes == 0.5
    assert settings.port == 8080


def test_env_file(clean_env, tmp_path):
    write_file(tmp_path / ".env", b"TURBO_TOKEN=from-file\nCACHE_DAYS=14\n")
    settings = get_settings()
    assert settings.turbo_token == "from-file"
    assert settings.cache_days == 14


def test_env_var_beats_env_file(clean_env, monkeypatch, tmp_path):
    write_file(tmp_path / ".env", b"TURBO_TOKEN=from-file\n")
    monkeypatch.setenv("TURBO_TOKEN", "from-env")
    assert get_settings().turbo_token == "from-env"


def test_token_required(clean_env):
    with pytest.raises(ConfigError):
        check_settings(Settings())
    with pytest.raises(ConfigError):
        check_settings(Settings(turbo_token=""))
    assert check_settings(Settings(turbo_token="secret")) == "secret"


def test_validate_settings(clean_env, monkeypatch):
    monkeypatch.setenv("TURBO_TOKEN", "short")
    assert "shorter than" in validate_settings()
    get_settings.cache_clear()
    monkeypatch.setenv("TURBO_TOKEN", "a-long-and-random-enough-token")
    assert validate_settings() is None


@pytest.mark.anyio
async def test_cache_does_not_start_without_token(clean_env, tmp_path):
    with pytest.raises(ConfigError):
        async with artifact_cache(Settings(storage_dir=tmp_path / "cache")):
            pass
    assert not (tmp_path / "cache").exists()
