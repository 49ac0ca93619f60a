"""
JSON File Storage Implementation

The local analogue of browser local storage: one JSON object file
mapping keys to string values.

DESIGN DECISION: Writes go to a temporary file in the same directory
which then replaces the original. A crash mid-write leaves the previous
file intact instead of a half-written one.

Blocking file I/O runs in a worker thread so the event loop is never
stalled by a slow disk.
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from bankapp.services.storage.interface import (
    KeyValueStorageInterface,
    StorageError,
)


class JsonFileKeyValueStorage(KeyValueStorageInterface):
    """Key-value store persisted to a single JSON file."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        """Load the whole file. A missing or empty file is an empty store."""
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StorageError(f"Failed to read {self._path}: {e}")

        if not text.strip():
            return {}

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageError(f"Storage file {self._path} is corrupt: {e}")

        if not isinstance(data, dict):
            raise StorageError(f"Storage file {self._path} does not contain a JSON object")
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self._path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Failed to write {self._path}: {e}")

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
        return data.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
            data[key] = value
            await asyncio.to_thread(self._write_all, data)

    async def delete(self, key: str) -> bool:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
            if key not in data:
                return False
            del data[key]
            await asyncio.to_thread(self._write_all, data)
            return True
