"""Retriever over a shared byte store."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import TypeVar

from .. import codec
from ..errors import NotFound
from ..kv.base import KVStore
from ..models import HashReference

logger = logging.getLogger(__name__)

ENTRY_KEY = "__entry__%s"
LINKS_KEY = "__links__%s__%s"
LATEST_REVISION = "__latest_revision__"
CURRENT_REVISION = "__current_revision__%s"

T = TypeVar("T")


class StoreRetriever:
    """Content-addressed entries and links in a ``KVStore``.

    One instance is one peer's view: ``agent`` scopes the current
    revision pointer, while entries, links and the latest revision are
    shared with every other retriever on the same store.
    """

    def __init__(self, store: KVStore, agent: str) -> None:
        self.store = store
        self.agent = agent

    # -- Entries --

    def get(self, hash: str, expected_type: type[T]) -> T:
        data = self.store.get(ENTRY_KEY % hash)
        if data is None:
            raise NotFound(hash, expected_type.__name__)
        return codec.decode(data, expected_type)

    def create_entry(self, value) -> str:
        data = codec.encode(value)
        hash = codec.hash_bytes(data)
        if self.store.add(ENTRY_KEY % hash, data):
            logger.debug("created %s %s", type(value).__name__, hash)
        return hash

    # -- Links --

    def create_link(self, base: str, target: str, tag: str) -> None:
        """Append ``target`` to the ``tag`` links of ``base``.

        Retries the compare-and-swap until it lands, so two peers linking
        from the same base keep both targets.
        """
        key = LINKS_KEY % (base, tag)
        while True:
            raw = self.store.get(key)
            targets = json.loads(raw) if raw is not None else []
            if target in targets:
                return
            targets.append(target)
            if self.store.cas(key, json.dumps(targets).encode("utf-8"), expected=raw):
                return
            logger.debug("link %s -[%s]-> %s lost a race, retrying", base, tag, target)

    def get_links(self, base: str, tag: str) -> list[str]:
        raw = self.store.get(LINKS_KEY % (base, tag))
        if raw is None:
            return []
        return list(json.loads(raw))

    # -- Revision pointers --

    def current_revision(self) -> HashReference | None:
        return self._load_pointer(CURRENT_REVISION % self.agent)

    def update_current_revision(self, hash: str, timestamp: datetime) -> None:
        self.store.set(
            CURRENT_REVISION % self.agent, codec.encode(HashReference(hash, timestamp))
        )

    def latest_revision(self) -> HashReference | None:
        return self._load_pointer(LATEST_REVISION)

    def update_latest_revision(self, hash: str, timestamp: datetime) -> None:
        self.store.set(LATEST_REVISION, codec.encode(HashReference(hash, timestamp)))

    def _load_pointer(self, key: str) -> HashReference | None:
        data = self.store.get(key)
        if data is None:
            return None
        return codec.decode(data, HashReference)
