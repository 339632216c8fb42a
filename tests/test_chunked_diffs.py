"""Tests for ChunkedDiffs."""

import pytest

from pdsync.chunked_diffs import ChunkedDiffs
from pdsync.models import PerspectiveDiff
from pdsync.retriever import MockRetriever, node_link


def links(prefix, n):
    return [node_link(f"{prefix}{i}") for i in range(n)]


class TestChunking:
    def test_starts_with_one_empty_chunk(self):
        chunked = ChunkedDiffs(5)
        assert chunked.chunks == [PerspectiveDiff()]

    def test_rejects_non_positive_max(self):
        with pytest.raises(ValueError):
            ChunkedDiffs(0)

    def test_fills_last_chunk(self):
        chunked = ChunkedDiffs(5)
        chunked.add_additions(links("a", 2))
        chunked.add_removals(links("r", 3))
        assert len(chunked) == 1
        assert chunked.chunks[0].total_diff_number() == 5

    def test_overflow_starts_new_chunk(self):
        chunked = ChunkedDiffs(5)
        chunked.add_additions(links("a", 4))
        chunked.add_removals(links("r", 2))
        assert len(chunked) == 2
        assert chunked.chunks[1].removals == tuple(links("r", 2))
        assert chunked.chunks[1].additions == ()

    def test_oversized_batch_not_split(self):
        chunked = ChunkedDiffs(3)
        chunked.add_additions(links("a", 7))
        assert len(chunked) == 2
        assert chunked.chunks[0].is_empty()
        assert len(chunked.chunks[1].additions) == 7

    def test_chunk_bound(self):
        chunked = ChunkedDiffs(4)
        for size in (1, 3, 2, 4, 1, 1, 2):
            chunked.add_additions(links(f"s{size}-", size))
            chunked.add_removals(links(f"r{size}-", 1))
        assert all(c.total_diff_number() <= 4 for c in chunked.chunks)

    def test_add_diff_respects_bound(self):
        chunked = ChunkedDiffs(10)
        chunked.add_diff(
            PerspectiveDiff(additions=links("a", 25), removals=links("r", 12))
        )
        assert all(c.total_diff_number() <= 10 for c in chunked.chunks)
        aggregated = chunked.into_aggregated_diff()
        assert aggregated.additions == tuple(links("a", 25))
        assert aggregated.removals == tuple(links("r", 12))


class TestAggregation:
    def test_aggregation_order(self):
        chunked = ChunkedDiffs(2)
        chunked.add_additions(links("a", 2))
        chunked.add_removals(links("x", 1))
        chunked.add_additions(links("b", 1))
        aggregated = chunked.into_aggregated_diff()
        assert aggregated.additions == tuple(links("a", 2) + links("b", 1))
        assert aggregated.removals == tuple(links("x", 1))

    def test_entries_round_trip_in_order(self):
        retriever = MockRetriever()
        chunked = ChunkedDiffs(2)
        chunked.add_additions(links("a", 2))
        chunked.add_additions(links("b", 2))
        chunked.add_removals(links("c", 1))
        hashes = chunked.into_entries(retriever)
        assert len(hashes) == 3

        reloaded = ChunkedDiffs.from_entries(retriever, hashes)
        assert reloaded.chunks == chunked.chunks
        assert reloaded.into_aggregated_diff() == chunked.into_aggregated_diff()

    def test_from_no_entries_keeps_one_chunk(self):
        reloaded = ChunkedDiffs.from_entries(MockRetriever(), [])
        assert len(reloaded) == 1
