"""In-memory retriever and graph fixtures for tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping, Sequence, TypeVar

from .. import codec
from ..errors import DecodeError, InternalError, NotFound
from ..models import (
    ExpressionProof,
    HashReference,
    LinkExpression,
    PerspectiveDiff,
    PerspectiveDiffEntryReference,
    Triple,
)

T = TypeVar("T")

MOCK_TIME = datetime(2022, 1, 1, tzinfo=timezone.utc)


def node_link(label: str) -> LinkExpression:
    """The single link a labelled mock node adds."""
    return LinkExpression(
        author="mock",
        data=Triple(source=label, target=label, predicate=None),
        timestamp=MOCK_TIME,
        proof=ExpressionProof(signature="sig", key="key"),
    )


class MockRetriever:
    """Retriever holding decoded entries in plain dicts.

    Hashes are computed with the codec, so a graph built here has the
    same addresses it would have in a ``StoreRetriever``.
    """

    def __init__(self) -> None:
        self.entries: dict[str, object] = {}
        self.links: dict[tuple[str, str], list[str]] = {}
        self.labels: dict[str, str] = {}
        self._current: HashReference | None = None
        self._latest: HashReference | None = None

    @classmethod
    def from_parents(cls, parents: Mapping[str, Sequence[str]]) -> "MockRetriever":
        """Build a revision graph from ``{child: [parent, ...]}``.

        Every label, whether it appears as a key or only as a parent,
        becomes a node whose diff adds ``node_link(label)``. Labels with
        no parents are roots. ``labels`` maps each label to its node hash.
        """
        retriever = cls()
        pending: list[str] = []

        def build(label: str) -> str:
            if label in retriever.labels:
                return retriever.labels[label]
            if label in pending:
                raise InternalError(f"Cycle in mock graph at {label!r}")
            pending.append(label)
            parent_hashes = tuple(build(p) for p in parents.get(label, ()))
            pending.remove(label)
            diff_hash = retriever.create_entry(
                PerspectiveDiff(additions=(node_link(label),))
            )
            ref = PerspectiveDiffEntryReference(
                diff=diff_hash, parents=parent_hashes or None
            )
            retriever.labels[label] = retriever.create_entry(ref)
            return retriever.labels[label]

        for label in parents:
            build(label)
        return retriever

    def node(self, label: str) -> str:
        return self.labels[label]

    def label_of(self, hash: str) -> str | None:
        for label, value in self.labels.items():
            if value == hash:
                return label
        return None

    # -- Retriever protocol --

    def get(self, hash: str, expected_type: type[T]) -> T:
        if hash not in self.entries:
            raise NotFound(hash, expected_type.__name__)
        value = self.entries[hash]
        if not isinstance(value, expected_type):
            raise DecodeError(
                f"Expected {expected_type.__name__}, found {type(value).__name__}"
            )
        return value

    def create_entry(self, value) -> str:
        hash = codec.hash_entry(value)
        self.entries.setdefault(hash, value)
        return hash

    def create_link(self, base: str, target: str, tag: str) -> None:
        targets = self.links.setdefault((base, tag), [])
        if target not in targets:
            targets.append(target)

    def get_links(self, base: str, tag: str) -> list[str]:
        return list(self.links.get((base, tag), ()))

    def current_revision(self) -> HashReference | None:
        return self._current

    def update_current_revision(self, hash: str, timestamp: datetime) -> None:
        self._current = HashReference(hash, timestamp)

    def latest_revision(self) -> HashReference | None:
        return self._latest

    def update_latest_revision(self, hash: str, timestamp: datetime) -> None:
        self._latest = HashReference(hash, timestamp)
