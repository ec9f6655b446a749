"""Persistent key/value store backing the configuration and credential vault."""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, Union

from ..utils.logging import get_logger


Keys = Union[str, Iterable[str]]


def _as_list(keys: Keys) -> list:
    if isinstance(keys, str):
        return [keys]
    return list(keys)


class KeyValueStore:
    """A small JSON document on disk with get/set/remove semantics.

    Every ``set`` or ``remove`` call is persisted as a single atomic rewrite of
    the document, so values written together in one call are never observed
    half-applied. Writers are serialized with an asyncio lock.
    """

    def __init__(self, path: Union[str, Path]):
        """Initialize the store.

        Args:
            path: Location of the JSON document
        """
        self.path = Path(path)
        self.logger = get_logger(self.__class__.__name__)
        self._lock = asyncio.Lock()

    def _read(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning(
                "Unreadable state document, treating as empty",
                path=str(self.path),
                error=str(e)
            )
            return {}

        if not isinstance(data, dict):
            self.logger.warning("State document is not an object", path=str(self.path))
            return {}
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    async def get(self, keys: Keys) -> Dict[str, Any]:
        """Return the stored values for ``keys``; absent keys are omitted."""
        data = await asyncio.to_thread(self._read)
        return {key: data[key] for key in _as_list(keys) if key in data}

    async def get_all(self) -> Dict[str, Any]:
        """Return a copy of the whole document."""
        return await asyncio.to_thread(self._read)

    async def set(self, values: Dict[str, Any]) -> None:
        """Persist every item of ``values`` in one write."""
        if not values:
            return
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data.update(values)
            await asyncio.to_thread(self._write, data)

        self.logger.debug("Stored keys", keys=sorted(values))

    async def remove(self, keys: Keys) -> None:
        """Delete ``keys``; missing keys are ignored."""
        keys = _as_list(keys)
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            if not any(key in data for key in keys):
                return
            for key in keys:
                data.pop(key, None)
            await asyncio.to_thread(self._write, data)

        self.logger.debug("Removed keys", keys=sorted(keys))
