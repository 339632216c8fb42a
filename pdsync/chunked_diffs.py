"""Bounded-size splitting of large diffs."""

from __future__ import annotations

from typing import Iterable

from .models import LinkExpression, PerspectiveDiff
from .retriever.base import Retriever


class ChunkedDiffs:
    """An ordered list of diffs, each holding at most ``max_changes_per_chunk``.

    A batch passed to ``add_additions`` / ``add_removals`` is never split:
    if it does not fit the last chunk it starts a new one, even when the
    batch alone exceeds the limit. Callers that need a hard bound feed
    batches no larger than the limit.
    """

    def __init__(self, max_changes_per_chunk: int) -> None:
        if max_changes_per_chunk <= 0:
            raise ValueError("max_changes_per_chunk must be positive")
        self.max_changes_per_chunk = max_changes_per_chunk
        self.chunks: list[PerspectiveDiff] = [PerspectiveDiff()]

    def add_additions(self, links: Iterable[LinkExpression]) -> None:
        batch = tuple(links)
        last = self.chunks[-1]
        if last.total_diff_number() + len(batch) > self.max_changes_per_chunk:
            self.chunks.append(PerspectiveDiff(additions=batch))
        else:
            self.chunks[-1] = PerspectiveDiff(last.additions + batch, last.removals)

    def add_removals(self, links: Iterable[LinkExpression]) -> None:
        batch = tuple(links)
        last = self.chunks[-1]
        if last.total_diff_number() + len(batch) > self.max_changes_per_chunk:
            self.chunks.append(PerspectiveDiff(removals=batch))
        else:
            self.chunks[-1] = PerspectiveDiff(last.additions, last.removals + batch)

    def add_diff(self, diff: PerspectiveDiff) -> None:
        """Add a whole diff in batches that each fit one chunk."""
        size = self.max_changes_per_chunk
        for i in range(0, len(diff.additions), size):
            self.add_additions(diff.additions[i : i + size])
        for i in range(0, len(diff.removals), size):
            self.add_removals(diff.removals[i : i + size])

    def into_entries(self, retriever: Retriever) -> list[str]:
        """Persist every chunk and return their hashes in order."""
        return [retriever.create_entry(chunk) for chunk in self.chunks]

    @classmethod
    def from_entries(
        cls,
        retriever: Retriever,
        hashes: Iterable[str],
        max_changes_per_chunk: int = 1000,
    ) -> "ChunkedDiffs":
        chunked = cls(max_changes_per_chunk)
        chunks = [retriever.get(h, PerspectiveDiff) for h in hashes]
        if chunks:
            chunked.chunks = chunks
        return chunked

    def into_aggregated_diff(self) -> PerspectiveDiff:
        return PerspectiveDiff.concat(self.chunks)

    def __len__(self) -> int:
        return len(self.chunks)
