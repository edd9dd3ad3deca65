"""
Artifact cache configuration

We read configuration from 2 sources, in order of precedence (higher is more priority)
- Environment variables
- A .env file, either in the current working directory or in a location specified
  by the ENV_FILE environment variable

Variable names follow the Turborepo remote cache conventions (TURBO_TOKEN etc.), so no prefix is used.
"""

import functools
from pathlib import Path
from typing import Annotated, Any, Callable

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = ""

MIN_TOKEN_LENGTH = 16


class ConfigError(Exception):
    """Raised when the server cannot start with the current settings"""


class Settings(BaseSettings):
    env_file: Annotated[
        Path,
        Field(
            description="Location of a .env file (if used) relative to working directory",
        ),
    ] = Path(".env")

    storage_dir: Annotated[
        Path,
        Field(
            description="Directory to store artifacts in (created if it does not exist)",
        ),
    ] = Path("remote-cache")

    port: Annotated[int, Field(description="Port to listen on")] = 3939

    turbo_token: Annotated[
        str | None,
        Field(
            description="Shared secret that clients must send as 'Authorization: Bearer <token>'",
        ),
    ] = None

    cache_days: Annotated[
        float,
        Field(
            description="Artifacts older than this many days are removed",
        ),
    ] = 7

    cleanup_minutes: Annotated[
        float,
        Field(
            description="Minimum number of minutes between two cleanup runs",
        ),
    ] = 5

    stat_concurrency: Annotated[
        int,
        Field(
            description="Maximum number of files inspected in parallel when indexing the storage directory at startup",
        ),
    ] = 25

    @model_validator(mode="after")
    def resolve_storage_dir(self: Any) -> "Settings":
        self.storage_dir = Path(self.storage_dir).resolve()
        return self

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX)


@functools.lru_cache()
def get_settings() -> Settings:
    # Read once to find out where the .env file lives, then load it without clobbering real env vars
    temp = Settings()
    load_dotenv(temp.env_file, override=False)
    return Settings()


def check_settings(settings: Settings | None = None) -> str:
    """
    Make sure the settings allow the server to start, and return the bearer token

    raises a ConfigError if the bearer token is not configured
    """
    settings = settings or get_settings()
    if not settings.turbo_token:
        raise ConfigError("TURBO_TOKEN env is required, please set it to continue")
    return settings.turbo_token


def _short_token(token: str | None) -> str | None:
    if token and len(token) < MIN_TOKEN_LENGTH:
        return (
            f"TURBO_TOKEN is shorter than {MIN_TOKEN_LENGTH} characters."
            " Anyone who can guess it can read and overwrite cached artifacts."
            " You can run `python -m artifactcache create-env` to generate a random token."
        )
    return None


def _non_positive_days(days: float) -> str | None:
    if days <= 0:
        return "CACHE_DAYS is not positive, every artifact will be removed at the next cleanup run"
    return None


# Values that are accepted, but are almost certainly a mistake
SETTING_WARNINGS: dict[str, Callable[[Any], str | None]] = {
    "turbo_token": _short_token,
    "cache_days": _non_positive_days,
}


def validate_settings(settings: Settings | None = None) -> str | None:
    settings = settings or get_settings()
    for fieldname, rule in SETTING_WARNINGS.items():
        if message := rule(getattr(settings, fieldname)):
            return message
    return None


if __name__ == "__main__":
    # Echo the settings
    for k, v in get_settings().model_dump().items():
        print(f"{ENV_PREFIX.upper()}{k.upper()}={v}")
