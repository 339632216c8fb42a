"""Entry types shared between peers.

Every type here is immutable and compares structurally. ``to_dict`` /
``from_dict`` give the plain-JSON form that the codec hashes and stores.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(raw: str) -> datetime:
    value = datetime.fromisoformat(raw)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class ExpressionProof:
    signature: str
    key: str

    def to_dict(self) -> dict:
        return {"signature": self.signature, "key": self.key}

    @classmethod
    def from_dict(cls, d: dict) -> "ExpressionProof":
        return cls(signature=d["signature"], key=d["key"])


@dataclass(frozen=True)
class Triple:
    source: str | None = None
    target: str | None = None
    predicate: str | None = None

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "target": self.target,
            "predicate": self.predicate,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Triple":
        return cls(
            source=d.get("source"),
            target=d.get("target"),
            predicate=d.get("predicate"),
        )


@dataclass(frozen=True)
class LinkExpression:
    """An atomic, signed fact: one link between two expressions."""

    author: str
    data: Triple
    timestamp: datetime
    proof: ExpressionProof

    def to_dict(self) -> dict:
        return {
            "author": self.author,
            "data": self.data.to_dict(),
            "timestamp": self.timestamp.isoformat(),
            "proof": self.proof.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "LinkExpression":
        return cls(
            author=d["author"],
            data=Triple.from_dict(d["data"]),
            timestamp=_parse_time(d["timestamp"]),
            proof=ExpressionProof.from_dict(d["proof"]),
        )


@dataclass(frozen=True)
class PerspectiveDiff:
    """The unit of change: links added and links removed."""

    additions: tuple[LinkExpression, ...] = ()
    removals: tuple[LinkExpression, ...] = ()

    def __post_init__(self) -> None:
        # Accept any iterable from callers but always hold tuples.
        object.__setattr__(self, "additions", tuple(self.additions))
        object.__setattr__(self, "removals", tuple(self.removals))

    def total_diff_number(self) -> int:
        return len(self.additions) + len(self.removals)

    def is_empty(self) -> bool:
        return not self.additions and not self.removals

    def extend(self, other: "PerspectiveDiff") -> "PerspectiveDiff":
        """Concatenate ``other`` after this diff."""
        return PerspectiveDiff(
            additions=self.additions + other.additions,
            removals=self.removals + other.removals,
        )

    @classmethod
    def concat(cls, diffs: Iterable["PerspectiveDiff"]) -> "PerspectiveDiff":
        additions: list[LinkExpression] = []
        removals: list[LinkExpression] = []
        for diff in diffs:
            additions.extend(diff.additions)
            removals.extend(diff.removals)
        return cls(additions=tuple(additions), removals=tuple(removals))

    def to_dict(self) -> dict:
        return {
            "additions": [link.to_dict() for link in self.additions],
            "removals": [link.to_dict() for link in self.removals],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "PerspectiveDiff":
        return cls(
            additions=tuple(LinkExpression.from_dict(x) for x in d["additions"]),
            removals=tuple(LinkExpression.from_dict(x) for x in d["removals"]),
        )


@dataclass(frozen=True)
class PerspectiveDiffEntryReference:
    """A revision node: one diff plus the revisions it was built on.

    ``parents`` is None for a root. More than one parent marks a merge.
    """

    diff: str
    parents: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if self.parents is not None:
            object.__setattr__(self, "parents", tuple(self.parents))

    def is_merge(self) -> bool:
        return self.parents is not None and len(self.parents) > 1

    def to_dict(self) -> dict:
        return {
            "diff": self.diff,
            "parents": list(self.parents) if self.parents is not None else None,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "PerspectiveDiffEntryReference":
        parents = d.get("parents")
        return cls(
            diff=d["diff"],
            parents=tuple(parents) if parents is not None else None,
        )


@dataclass(frozen=True)
class Snapshot:
    """Aggregated content of every revision in ``included_diffs``.

    The aggregate is split into chunk entries listed in ``diff_chunks``.
    """

    diff_chunks: tuple[str, ...] = ()
    included_diffs: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "diff_chunks", tuple(self.diff_chunks))
        object.__setattr__(
            self, "included_diffs", tuple(sorted(set(self.included_diffs)))
        )

    def to_dict(self) -> dict:
        return {
            "diff_chunks": list(self.diff_chunks),
            "included_diffs": list(self.included_diffs),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Snapshot":
        return cls(
            diff_chunks=tuple(d["diff_chunks"]),
            included_diffs=tuple(d["included_diffs"]),
        )


@dataclass(frozen=True)
class HashReference:
    """Value of a revision pointer."""

    hash: str
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {"hash": self.hash, "timestamp": self.timestamp.isoformat()}

    @classmethod
    def from_dict(cls, d: dict) -> "HashReference":
        return cls(hash=d["hash"], timestamp=_parse_time(d["timestamp"]))


@dataclass(frozen=True)
class Perspective:
    """A materialized link set."""

    links: tuple[LinkExpression, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "links", tuple(self.links))

    def __len__(self) -> int:
        return len(self.links)

    def __contains__(self, link: object) -> bool:
        return link in self.links

    def to_dict(self) -> dict:
        return {"links": [link.to_dict() for link in self.links]}

    @classmethod
    def from_dict(cls, d: dict) -> "Perspective":
        return cls(links=tuple(LinkExpression.from_dict(x) for x in d["links"]))


@dataclass(frozen=True)
class DiffBroadcast:
    """What a peer sends to the others right after a commit."""

    diff: PerspectiveDiff
    reference: PerspectiveDiffEntryReference
    reference_hash: str

    def to_dict(self) -> dict:
        return {
            "diff": self.diff.to_dict(),
            "reference": self.reference.to_dict(),
            "reference_hash": self.reference_hash,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "DiffBroadcast":
        return cls(
            diff=PerspectiveDiff.from_dict(d["diff"]),
            reference=PerspectiveDiffEntryReference.from_dict(d["reference"]),
            reference_hash=d["reference_hash"],
        )
