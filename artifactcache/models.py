import time

from pydantic import BaseModel, Field


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch"""
    return int(time.time() * 1000)


class CacheEntry(BaseModel):
    """One cached artifact as known to the in-memory index."""

    key: str = Field(min_length=1, description="Artifact name, also the name of the object in the store")
    last_modified: int = Field(description="Milliseconds since the epoch: file mtime at startup, or time of the last upload")


class StoredObject(BaseModel):
    """Result of inspecting a single object in the artifact store."""

    name: str
    is_file: bool
    size: int
    mtime_ms: int
