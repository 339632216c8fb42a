"""In-memory byte store."""

import threading
from typing import Iterable, Mapping

from .base import KVStore


def _check_bytes(value: object) -> None:
    if not isinstance(value, bytes):
        raise TypeError(f"Expected bytes, got {type(value).__name__}")


class Memory(KVStore):
    """A dict-backed store, shared by reference between in-process peers."""

    def __init__(self) -> None:
        self.memory: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        return self.memory.get(key)

    def set(self, key: str, value: bytes) -> None:
        _check_bytes(value)
        with self._lock:
            self.memory[key] = value

    def get_many(self, *keys: str) -> Mapping[str, bytes]:
        return {key: val for key in keys if (val := self.memory.get(key)) is not None}

    def keys(self) -> Iterable[str]:
        return list(self.memory)

    def __contains__(self, key: str) -> bool:
        return key in self.memory

    def __len__(self) -> int:
        return len(self.memory)

    def remove(self, key: str) -> None:
        with self._lock:
            self.memory.pop(key, None)

    def cas(self, key: str, value: bytes, expected: bytes | None) -> bool:
        _check_bytes(value)
        with self._lock:
            if self.memory.get(key) != expected:
                return False
            self.memory[key] = value
            return True

    def clear(self) -> None:
        with self._lock:
            self.memory.clear()
