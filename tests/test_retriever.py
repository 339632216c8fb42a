"""Tests for the retriever implementations."""

import threading
from datetime import datetime, timezone

import pytest

from pdsync.errors import DecodeError, NotFound
from pdsync.kv.memory import Memory
from pdsync.models import (
    PerspectiveDiff,
    PerspectiveDiffEntryReference,
    Snapshot,
)
from pdsync.retriever import MockRetriever, Retriever, StoreRetriever, node_link

T0 = datetime(2023, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def backend():
    return Memory()


class TestStoreRetrieverEntries:
    def test_is_a_retriever(self, backend):
        assert isinstance(StoreRetriever(backend, "alice"), Retriever)
        assert isinstance(MockRetriever(), Retriever)

    def test_create_and_get(self, backend):
        r = StoreRetriever(backend, "alice")
        diff = PerspectiveDiff(additions=(node_link("a"),))
        h = r.create_entry(diff)
        assert r.get(h, PerspectiveDiff) == diff

    def test_create_is_idempotent(self, backend):
        r = StoreRetriever(backend, "alice")
        diff = PerspectiveDiff(additions=(node_link("a"),))
        h1 = r.create_entry(diff)
        keys_before = set(backend.keys())
        h2 = r.create_entry(diff)
        assert h1 == h2
        assert set(backend.keys()) == keys_before

    def test_get_missing_raises_not_found(self, backend):
        r = StoreRetriever(backend, "alice")
        with pytest.raises(NotFound) as exc:
            r.get("f" * 16, PerspectiveDiff)
        assert exc.value.hash == "f" * 16
        assert isinstance(exc.value, KeyError)

    def test_get_wrong_type_raises_decode_error(self, backend):
        r = StoreRetriever(backend, "alice")
        h = r.create_entry(PerspectiveDiff())
        with pytest.raises(DecodeError):
            r.get(h, PerspectiveDiffEntryReference)

    def test_entries_shared_across_agents(self, backend):
        alice = StoreRetriever(backend, "alice")
        bob = StoreRetriever(backend, "bob")
        h = alice.create_entry(Snapshot(diff_chunks=("c",), included_diffs=("x",)))
        assert bob.get(h, Snapshot).diff_chunks == ("c",)


class TestStoreRetrieverLinks:
    def test_no_links(self, backend):
        assert StoreRetriever(backend, "alice").get_links("base", "snapshot") == []

    def test_links_by_tag(self, backend):
        r = StoreRetriever(backend, "alice")
        r.create_link("base", "t1", "snapshot")
        r.create_link("base", "t2", "other")
        assert r.get_links("base", "snapshot") == ["t1"]
        assert r.get_links("base", "other") == ["t2"]

    def test_link_dedup(self, backend):
        r = StoreRetriever(backend, "alice")
        r.create_link("base", "t1", "snapshot")
        r.create_link("base", "t1", "snapshot")
        assert r.get_links("base", "snapshot") == ["t1"]

    def test_concurrent_links_all_kept(self, backend):
        peers = [StoreRetriever(backend, f"agent-{i}") for i in range(8)]

        def link(i):
            peers[i].create_link("base", f"target-{i}", "snapshot")

        threads = [threading.Thread(target=link, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(peers[0].get_links("base", "snapshot")) == sorted(
            f"target-{i}" for i in range(8)
        )


class TestRevisionPointers:
    def test_unset(self, backend):
        r = StoreRetriever(backend, "alice")
        assert r.current_revision() is None
        assert r.latest_revision() is None

    def test_current_is_per_agent(self, backend):
        alice = StoreRetriever(backend, "alice")
        bob = StoreRetriever(backend, "bob")
        alice.update_current_revision("a" * 16, T0)
        assert alice.current_revision().hash == "a" * 16
        assert alice.current_revision().timestamp == T0
        assert bob.current_revision() is None

    def test_latest_is_shared_last_write_wins(self, backend):
        alice = StoreRetriever(backend, "alice")
        bob = StoreRetriever(backend, "bob")
        alice.update_latest_revision("a" * 16, T0)
        bob.update_latest_revision("b" * 16, T0)
        assert alice.latest_revision().hash == "b" * 16


class TestMockRetriever:
    def test_from_parents_builds_graph(self):
        graph = MockRetriever.from_parents({"1": ["0"], "2": ["0"], "3": ["1", "2"]})
        assert set(graph.labels) == {"0", "1", "2", "3"}
        merge = graph.get(graph.node("3"), PerspectiveDiffEntryReference)
        assert merge.parents == (graph.node("1"), graph.node("2"))
        root = graph.get(graph.node("0"), PerspectiveDiffEntryReference)
        assert root.parents is None

    def test_node_diff_adds_its_label(self):
        graph = MockRetriever.from_parents({"1": ["0"]})
        ref = graph.get(graph.node("1"), PerspectiveDiffEntryReference)
        assert graph.get(ref.diff, PerspectiveDiff).additions == (node_link("1"),)
        assert graph.label_of(graph.node("1")) == "1"

    def test_same_hashes_as_store_retriever(self, backend):
        graph = MockRetriever.from_parents({"1": ["0"]})
        store = StoreRetriever(backend, "alice")
        diff_hash = store.create_entry(PerspectiveDiff(additions=(node_link("0"),)))
        root_hash = store.create_entry(PerspectiveDiffEntryReference(diff=diff_hash))
        assert root_hash == graph.node("0")

    def test_missing_and_wrong_type(self):
        graph = MockRetriever.from_parents({"1": ["0"]})
        with pytest.raises(NotFound):
            graph.get("nope", PerspectiveDiff)
        with pytest.raises(DecodeError):
            graph.get(graph.node("1"), PerspectiveDiff)

    def test_pointers(self):
        graph = MockRetriever()
        assert graph.latest_revision() is None
        graph.update_latest_revision("x", T0)
        graph.update_current_revision("y", T0)
        assert graph.latest_revision().hash == "x"
        assert graph.current_revision().hash == "y"
