"""Tests for the in-memory byte store."""

import threading

import pytest

from pdsync.kv.memory import Memory


class TestMemoryBasic:
    def test_set_get(self):
        m = Memory()
        m.set("__entry__abc", b"payload")
        assert m.get("__entry__abc") == b"payload"

    def test_get_missing(self):
        assert Memory().get("nope") is None

    def test_get_many_skips_missing(self):
        m = Memory()
        m.set("a", b"1")
        m.set("c", b"3")
        assert m.get_many("a", "c", "missing") == {"a": b"1", "c": b"3"}

    def test_keys_and_contains(self):
        m = Memory()
        m.set("a", b"1")
        m.set("b", b"2")
        assert set(m.keys()) == {"a", "b"}
        assert "a" in m
        assert "z" not in m
        assert len(m) == 2

    def test_remove(self):
        m = Memory()
        m.set("k", b"v")
        m.remove("k")
        m.remove("never-there")
        assert "k" not in m

    def test_clear(self):
        m = Memory()
        m.set("a", b"1")
        m.clear()
        assert list(m.keys()) == []

    def test_rejects_non_bytes(self):
        m = Memory()
        with pytest.raises(TypeError, match="Expected bytes"):
            m.set("k", "text")  # type: ignore
        with pytest.raises(TypeError, match="Expected bytes"):
            m.cas("k", "text", expected=None)  # type: ignore


class TestMemoryCAS:
    def test_cas_success(self):
        m = Memory()
        m.set("k", b"old")
        assert m.cas("k", b"new", expected=b"old")
        assert m.get("k") == b"new"

    def test_cas_failure(self):
        m = Memory()
        m.set("k", b"old")
        assert not m.cas("k", b"new", expected=b"wrong")
        assert m.get("k") == b"old"

    def test_cas_create_fails_if_exists(self):
        m = Memory()
        m.set("k", b"existing")
        assert not m.cas("k", b"new", expected=None)

    def test_add_writes_once(self):
        m = Memory()
        assert m.add("__entry__h", b"first")
        assert not m.add("__entry__h", b"second")
        assert m.get("__entry__h") == b"first"

    def test_cas_thread_safety(self):
        m = Memory()
        m.set("__latest_revision__", b"0")
        wins = []

        def try_cas(thread_id):
            if m.cas("__latest_revision__", f"rev-{thread_id}".encode(), expected=b"0"):
                wins.append(thread_id)

        threads = [threading.Thread(target=try_cas, args=(i,)) for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(wins) == 1
