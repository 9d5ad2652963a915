"""Local filesystem KeyValueStore — all keys live in one JSON document.

Layout:
    <path>        — {"<key>": "<value>", ...}
    <path>.tmp    — scratch file, atomically renamed over <path> on every write
"""

import asyncio
import json
import logging
import os
from pathlib import Path

from batch_engine.application.interfaces import KeyValueStore

logger = logging.getLogger(__name__)


class JsonFileKeyValueStore(KeyValueStore):
    """Infrastructure adapter persisting key/value pairs to a single JSON file.

    Writes go to a temporary sibling first and are moved into place with
    os.replace, so a crash mid-write leaves the previous document intact.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def get(self, key: str) -> str | None:
        async with self._lock:
            return self._read().get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    async def delete(self, key: str) -> None:
        async with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError:
            logger.warning("Key/value file %s is not valid JSON; starting empty", self._path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Key/value file %s does not hold an object; starting empty", self._path)
            return {}
        return data

    def _write(self, data: dict[str, str]) -> None:
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp_path, self._path)
        logger.debug("Wrote %d key(s) to %s", len(data), self._path)
