"""
Key-value blob stores for engine state that must survive restarts.

The location tracker is the only writer. Stores deal in opaque bytes; the
caller owns serialization.
"""

import asyncio
import os
import re
from pathlib import Path
from typing import Protocol

from .errors import StoreError

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(Protocol):
    async def load(self, key: str) -> bytes | None:
        """Return the blob stored under key, or None if absent."""
        ...

    async def save(self, key: str, data: bytes) -> None:
        """Durably replace the blob stored under key."""
        ...


class MemoryStore:
    """In-process store, used in tests and when no data directory is set."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    async def load(self, key: str) -> bytes | None:
        return self._blobs.get(key)

    async def save(self, key: str, data: bytes) -> None:
        self._blobs[key] = bytes(data)


class FileStore:
    """
    Stores each key as a file in a directory.

    Writes go to a temporary sibling first and are moved into place with
    os.replace, so readers never see a partially written blob.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self._directory = Path(directory)

    def path_for(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise StoreError(f"Invalid store key: {key!r}")
        return self._directory / f"{key}.json"

    async def load(self, key: str) -> bytes | None:
        path = self.path_for(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreError(f"Could not read {path}: {e}") from e

    async def save(self, key: str, data: bytes) -> None:
        path = self.path_for(key)
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as e:
            raise StoreError(f"Could not write {path}: {e}") from e

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        with open(tmp, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
