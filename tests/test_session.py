"""Tests for Session isolation, lifecycle and SessionRegistry."""

import logging
import threading

import pytest

from dashflow import (
    DuplicateNodeError,
    NodeInUseError,
    Session,
    SessionClosedError,
    SessionRegistry,
)


def _wire(session):
    session.define_source("x", 1)
    session.define_derived("doubled", lambda: session.read("x") * 2)


class TestSession:
    def test_sessions_are_isolated(self):
        a = Session()
        b = Session()
        _wire(a)
        _wire(b)
        a.write("x", 10)
        assert a.read("doubled") == 20
        assert b.read("doubled") == 2

    def test_same_ids_in_different_sessions(self):
        a = Session()
        b = Session()
        a.define_source("x", 1)
        b.define_source("x", 2)
        assert a.read("x") == 1
        assert b.read("x") == 2

    def test_duplicate_id_rejected(self):
        s = Session()
        s.define_source("x", 1)
        with pytest.raises(DuplicateNodeError):
            s.define_derived("x", lambda: 1)

    def test_remove_in_use_rejected(self):
        s = Session()
        _wire(s)
        s.read("doubled")
        with pytest.raises(NodeInUseError):
            s.remove("x")
        assert "x" in s

    def test_remove_unused(self):
        s = Session()
        _wire(s)
        s.read("doubled")
        s.remove("doubled")
        s.remove("x")
        assert s.node_ids() == []

    def test_dispose(self):
        s = Session()
        _wire(s)
        s.dispose()
        assert s.closed
        with pytest.raises(SessionClosedError):
            s.read("x")
        with pytest.raises(SessionClosedError):
            s.write("x", 2)
        with pytest.raises(SessionClosedError):
            with s.batch():
                pass
        s.dispose()  # idempotent

    def test_dispose_closes_introspection(self):
        s = Session()
        _wire(s)
        s.dispose()
        with pytest.raises(SessionClosedError):
            s.is_dirty("x")
        with pytest.raises(SessionClosedError):
            s.node_ids()
        assert "x" not in s

    def test_dispose_inside_batch_drops_pending(self):
        s = Session()
        _wire(s)
        fired = []
        s.define_observer("view", lambda: fired.append(s.read("doubled")))
        with s.batch():
            s.write("x", 5)
            s.dispose()
            assert s.scheduler.pending_count() == 0
        assert fired == [2]

    def test_default_names_are_distinct(self):
        a, b = Session(), Session()
        assert a.name != b.name

    def test_context_manager(self):
        with Session() as s:
            _wire(s)
        assert s.closed

    def test_repr(self):
        s = Session(name="alice")
        _wire(s)
        assert repr(s) == "Session('alice', 2 nodes)"

    def test_parallel_sessions(self):
        """Sessions in different threads never share recording state."""
        results = {}

        def run(key, value):
            s = Session(name=key)
            s.define_source("x", 0)
            s.define_derived("doubled", lambda: s.read("x") * 2)
            total = 0
            for _ in range(200):
                s.write("x", value)
                total += s.read("doubled")
            results[key] = (total, s.graph.edges())

        threads = [threading.Thread(target=run, args=(f"s{i}", i)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for i in range(4):
            total, edges = results[f"s{i}"]
            assert total == 400 * i
            assert edges == {("doubled", "x")}


class TestSessionRegistry:
    def test_connect_runs_setup(self):
        registry = SessionRegistry(_wire)
        s = registry.connect("alice")
        assert s.read("doubled") == 2
        assert "alice" in registry
        assert registry.get("alice") is s

    def test_reconnect_returns_live_session(self):
        registry = SessionRegistry(_wire)
        assert registry.connect("alice") is registry.connect("alice")
        assert len(registry) == 1

    def test_users_isolated(self):
        registry = SessionRegistry(_wire)
        alice = registry.connect("alice")
        bob = registry.connect("bob")
        alice.write("x", 5)
        assert bob.read("doubled") == 2

    def test_disconnect_disposes(self, caplog):
        registry = SessionRegistry(_wire)
        s = registry.connect("alice")
        with caplog.at_level(logging.INFO, logger="dashflow.session"):
            registry.disconnect("alice")
        assert s.closed
        assert "alice" not in registry
        assert "Session 'alice' disconnected" in caplog.text
        registry.disconnect("alice")  # unknown keys ignored

    def test_failed_setup_not_registered(self):
        def bad_setup(session):
            raise RuntimeError("boom")

        registry = SessionRegistry(bad_setup)
        with pytest.raises(RuntimeError):
            registry.connect("alice")
        assert "alice" not in registry

    def test_close_all(self):
        registry = SessionRegistry(_wire)
        sessions = [registry.connect(k) for k in ("a", "b")]
        registry.close_all()
        assert len(registry) == 0
        assert all(s.closed for s in sessions)
