"""Abstract byte store shared by every peer of a perspective."""

from abc import ABC, abstractmethod
from typing import Iterable, Mapping


class KVStore(ABC):
    """Byte-valued store under entries, links and pointers.

    Stands in for the shared DHT: every peer's ``StoreRetriever`` writes
    encoded entries, links and revision pointers into one of these.
    Encoding is handled by ``pdsync.codec``.
    """

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Stored bytes for ``key``, or None."""

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        """Overwrite ``key``. Used for revision pointers."""

    @abstractmethod
    def get_many(self, *keys: str) -> Mapping[str, bytes]:
        """Values for the present keys among ``keys``."""

    @abstractmethod
    def keys(self) -> Iterable[str]:
        """All stored keys."""

    @abstractmethod
    def __contains__(self, key: str) -> bool:
        """Whether ``key`` has a value."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key``; missing keys are ignored."""

    @abstractmethod
    def cas(self, key: str, value: bytes, expected: bytes | None) -> bool:
        """Write ``value`` if ``key`` currently holds ``expected``.

        ``expected=None`` requires the key to be absent. Link lists are
        appended through this so concurrent peers do not drop links.

        Returns whether the write happened.
        """

    @abstractmethod
    def clear(self) -> None:
        """Delete everything."""

    def add(self, key: str, value: bytes) -> bool:
        """Write ``value`` only when ``key`` is absent.

        Content-addressed entries never change once written, so a second
        write of the same key is a no-op. Returns True if this call wrote.
        """
        return self.cas(key, value, expected=None)
