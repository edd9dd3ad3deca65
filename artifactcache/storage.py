"""
Directory-backed artifact store.

Artifacts are stored as flat files named after their key. Uploads are first written to a scratch
directory inside the store and then renamed over the target, so readers never see a half-written file.
Blocking filesystem calls run in a worker thread to keep the event loop free.
"""

import asyncio
import logging
import os
import shutil
import stat
import uuid
from pathlib import Path
from typing import AsyncIterable, AsyncIterator, BinaryIO

from artifactcache.models import StoredObject

CHUNK_SIZE = 64 * 1024
SCRATCH_DIR = ".incoming"


class InvalidKey(ValueError):
    pass


def validate_key(key: str) -> str:
    """
    Check that key can be used as a file name inside the store

    raises InvalidKey for empty keys and keys that could escape the storage directory
    """
    if not key:
        raise InvalidKey("Artifact key cannot be empty")
    if key in {".", ".."} or "/" in key or "\\" in key or "\0" in key:
        raise InvalidKey(f"Invalid artifact key {key!r}")
    return key


class LocalStore:
    def __init__(self, root: Path | str):
        self.root = Path(root)
        self.scratch = self.root / SCRATCH_DIR

    def ensure(self) -> None:
        """Create the storage directory and throw away uploads left over from an earlier run"""
        self.root.mkdir(parents=True, exist_ok=True)
        if self.scratch.exists():
            shutil.rmtree(self.scratch, ignore_errors=True)
        self.scratch.mkdir(exist_ok=True)

    def path(self, key: str) -> Path:
        return self.root / validate_key(key)

    async def list_names(self) -> list[str]:
        return await asyncio.to_thread(os.listdir, self.root)

    async def stat(self, name: str) -> StoredObject:
        st = await asyncio.to_thread(os.stat, self.root / name)
        return StoredObject(
            name=name,
            is_file=stat.S_ISREG(st.st_mode),
            size=st.st_size,
            mtime_ms=int(st.st_mtime * 1000),
        )

    async def read(self, key: str, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Yield the contents of the artifact in chunks"""
        f: BinaryIO = await asyncio.to_thread(open, self.path(key), "rb")
        try:
            while chunk := await asyncio.to_thread(f.read, chunk_size):
                yield chunk
        finally:
            await asyncio.to_thread(f.close)

    async def write(self, key: str, chunks: AsyncIterable[bytes]) -> int:
        """
        Store the streamed chunks under key, replacing any existing artifact

        Shorthand for receive followed by commit. Returns the number of bytes written.
        """
        validate_key(key)
        tmp, size = await self.receive(chunks)
        await self.commit(tmp, key)
        return size

    async def receive(self, chunks: AsyncIterable[bytes]) -> tuple[Path, int]:
        """
        Write the streamed chunks to a new scratch file, returning its path and size

        If the stream or the write fails, the scratch file is removed and the exception is re-raised.
        """
        tmp = self.scratch / f"{uuid.uuid4().hex}.part"
        size = 0
        try:
            f: BinaryIO = await asyncio.to_thread(open, tmp, "wb")
            try:
                async for chunk in chunks:
                    if chunk:
                        await asyncio.to_thread(f.write, chunk)
                        size += len(chunk)
            finally:
                await asyncio.to_thread(f.close)
        except BaseException:
            await self.discard(tmp)
            raise
        return tmp, size

    async def commit(self, tmp: Path, key: str) -> None:
        """Move a received scratch file over the artifact for key. On failure the scratch file is removed."""
        try:
            await asyncio.to_thread(os.replace, tmp, self.path(key))
        except BaseException:
            await self.discard(tmp)
            raise

    async def discard(self, path: Path) -> None:
        """Remove a partially written file. Failing to do so is logged, not raised."""
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            # attempted cleanup
            logging.warning(f"Could not remove partial upload {path}: {e}")

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(os.unlink, self.path(key))
