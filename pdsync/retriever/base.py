"""Retriever protocol."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, TypeVar, runtime_checkable

from ..models import HashReference

T = TypeVar("T")


@runtime_checkable
class Retriever(Protocol):
    """Content-addressed entry storage plus the two revision pointers.

    Implementations: ``StoreRetriever``, ``MockRetriever``.

    ``get`` raises ``NotFound`` for an absent hash and ``DecodeError``
    when the entry is not an ``expected_type``. The pointer getters
    return None when unset.
    """

    def get(self, hash: str, expected_type: type[T]) -> T: ...
    def create_entry(self, value) -> str: ...
    def create_link(self, base: str, target: str, tag: str) -> None: ...
    def get_links(self, base: str, tag: str) -> list[str]: ...
    def current_revision(self) -> HashReference | None: ...
    def update_current_revision(self, hash: str, timestamp: datetime) -> None: ...
    def latest_revision(self) -> HashReference | None: ...
    def update_latest_revision(self, hash: str, timestamp: datetime) -> None: ...
