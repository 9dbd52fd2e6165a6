"""Storage backends for the cost cache.

A backend stores opaque bytes under string keys. Expiry and
serialization live in CostCache; backends only persist.
"""

import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union
from urllib.parse import quote, unquote

logger = logging.getLogger(__name__)

ENTRY_SUFFIX = ".yaml"


class CacheBackend(ABC):
    """Key/value persistence used by CostCache."""

    @abstractmethod
    def load(self, key: str) -> Optional[bytes]:
        """Return the stored bytes, or None when absent."""

    @abstractmethod
    def store(self, key: str, data: bytes) -> None:
        """Overwrite the entry for key."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the entry for key; absent keys are ignored."""

    @abstractmethod
    def keys(self) -> List[str]:
        """All keys currently stored."""


class MemoryBackend(CacheBackend):
    """Process-local dict backend."""

    def __init__(self) -> None:
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def load(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def store(self, key: str, data: bytes) -> None:
        with self._lock:
            self._data[key] = data

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data)


class FileBackend(CacheBackend):
    """One YAML document per key inside a directory.

    Keys are percent-encoded into file names so they round-trip through
    ``keys()``. Writes go to a temporary file first and are moved into
    place with ``os.replace``, so readers never see a partial entry.
    """

    def __init__(self, cache_dir: Union[str, Path]):
        self.cache_dir = Path(cache_dir).expanduser()
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"File cache at {self.cache_dir}")

    def _path(self, key: str) -> Path:
        return self.cache_dir / f"{quote(key, safe='')}{ENTRY_SUFFIX}"

    def load(self, key: str) -> Optional[bytes]:
        try:
            return self._path(key).read_bytes()
        except FileNotFoundError:
            return None

    def store(self, key: str, data: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=".tmp-", suffix=ENTRY_SUFFIX)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, self._path(key))
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass

    def keys(self) -> List[str]:
        return [
            unquote(path.name[: -len(ENTRY_SUFFIX)])
            for path in self.cache_dir.glob(f"*{ENTRY_SUFFIX}")
            if not path.name.startswith(".tmp-")
        ]
