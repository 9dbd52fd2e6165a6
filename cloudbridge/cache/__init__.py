"""Cost cache with pluggable storage."""

from .backends import CacheBackend, FileBackend, MemoryBackend
from .store import DEFAULT_TTL, CostCache

__all__ = ["CacheBackend", "CostCache", "DEFAULT_TTL", "FileBackend", "MemoryBackend"]
