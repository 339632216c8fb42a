"""Snapshot building and lookup.

A snapshot is linked from a revision node under the ``"snapshot"`` tag
and holds the aggregated content of that node and all its ancestors.
Readers stop walking history at the nearest snapshot.
"""

from __future__ import annotations

import logging

from .chunked_diffs import ChunkedDiffs
from .models import (
    LinkExpression,
    PerspectiveDiff,
    PerspectiveDiffEntryReference,
    Snapshot,
)
from .retriever.base import Retriever

logger = logging.getLogger(__name__)

SNAPSHOT_TAG = "snapshot"
SNAPSHOT_CHUNK_SIZE = 1000


def get_snapshot(retriever: Retriever, node: str) -> Snapshot | None:
    """Snapshot linked from ``node``, or None if there is none."""
    links = retriever.get_links(node, SNAPSHOT_TAG)
    if not links:
        return None
    return retriever.get(links[0], Snapshot)


def snapshot_diff(retriever: Retriever, snapshot: Snapshot) -> PerspectiveDiff:
    """Aggregated content of a snapshot, chunks in order."""
    return ChunkedDiffs.from_entries(
        retriever, snapshot.diff_chunks, SNAPSHOT_CHUNK_SIZE
    ).into_aggregated_diff()


def generate_snapshot(
    retriever: Retriever,
    start: str,
    chunk_size: int = SNAPSHOT_CHUNK_SIZE,
) -> Snapshot:
    """Aggregate everything reachable from ``start`` into a new snapshot.

    Walks parents depth-first. A snapshot found on any node other than
    ``start`` is merged whole and ends that branch. Additions and
    removals are deduplicated, keeping first-seen order. The chunks are
    persisted; the snapshot entry itself is not.
    """
    additions: dict[LinkExpression, None] = {}
    removals: dict[LinkExpression, None] = {}
    included: set[str] = set()
    seen: set[str] = set()
    branches = [start]

    while branches:
        node = branches.pop()
        if node in seen:
            continue
        seen.add(node)

        if node != start:
            existing = get_snapshot(retriever, node)
            if existing is not None:
                diff = snapshot_diff(retriever, existing)
                additions.update(dict.fromkeys(diff.additions))
                removals.update(dict.fromkeys(diff.removals))
                included.update(existing.included_diffs)
                included.add(node)
                continue

        ref = retriever.get(node, PerspectiveDiffEntryReference)
        diff = retriever.get(ref.diff, PerspectiveDiff)
        additions.update(dict.fromkeys(diff.additions))
        removals.update(dict.fromkeys(diff.removals))
        included.add(node)

        # Reversed so the first parent is walked next.
        for parent in reversed(ref.parents or ()):
            if parent not in seen:
                branches.append(parent)

    chunked = ChunkedDiffs(chunk_size)
    chunked.add_diff(PerspectiveDiff(tuple(additions), tuple(removals)))
    snapshot = Snapshot(
        diff_chunks=tuple(chunked.into_entries(retriever)),
        included_diffs=tuple(included),
    )
    logger.debug(
        "snapshot from %s: %d revisions, %d chunks",
        start,
        len(snapshot.included_diffs),
        len(snapshot.diff_chunks),
    )
    return snapshot


def entries_since_snapshot(retriever: Retriever, start: str) -> int:
    """Count non-merge revisions reachable from ``start`` above a snapshot.

    A node carrying a snapshot is a boundary and is not counted.
    """
    count = 0
    seen: set[str] = set()
    branches = [start]

    while branches:
        node = branches.pop()
        if node in seen:
            continue
        seen.add(node)
        if retriever.get_links(node, SNAPSHOT_TAG):
            continue
        ref = retriever.get(node, PerspectiveDiffEntryReference)
        if not ref.is_merge():
            count += 1
        for parent in reversed(ref.parents or ()):
            if parent not in seen:
                branches.append(parent)

    return count
