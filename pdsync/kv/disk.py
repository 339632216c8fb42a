"""Disk-backed byte store using diskcache."""

from typing import Iterable, Mapping, cast

from .base import KVStore

ONE_GB = 1024 * 1024 * 1024


class Disk(KVStore):
    """Store backed by a diskcache ``Cache`` (SQLite + mmap).

    Several ``Disk`` instances opened on the same directory see each
    other's writes, which is how separate processes share a perspective.
    """

    def __init__(self, directory: str, size_limit: int = ONE_GB) -> None:
        from diskcache import Cache as DiskCache

        self.directory = directory
        # Entries are never evicted: losing one would break the revision graph.
        self.store = DiskCache(
            directory, size_limit=size_limit, eviction_policy="none"
        )

    def get(self, key: str) -> bytes | None:
        return cast(bytes | None, self.store.get(key))

    def set(self, key: str, value: bytes) -> None:
        if not isinstance(value, bytes):
            raise TypeError(f"Expected bytes, got {type(value).__name__}")
        self.store[key] = value

    def get_many(self, *keys: str) -> Mapping[str, bytes]:
        return {k: v for k in keys if (v := self.get(k)) is not None}

    def keys(self) -> Iterable[str]:
        for key in self.store.iterkeys():
            yield str(key)

    def __contains__(self, key: str) -> bool:
        return key in self.store

    def remove(self, key: str) -> None:
        self.store.delete(key)

    def cas(self, key: str, value: bytes, expected: bytes | None) -> bool:
        if not isinstance(value, bytes):
            raise TypeError(f"Expected bytes, got {type(value).__name__}")
        with self.store.transact():
            if self.store.get(key) != expected:
                return False
            self.store[key] = value
            return True

    def add(self, key: str, value: bytes) -> bool:
        if not isinstance(value, bytes):
            raise TypeError(f"Expected bytes, got {type(value).__name__}")
        return bool(self.store.add(key, value))

    def clear(self) -> None:
        self.store.clear()

    def close(self) -> None:
        self.store.close()
