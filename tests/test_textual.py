"""Tests for dashflow.textual — Textual integration layer."""

import logging
import threading

import pytest
from textual.css.query import NoMatches

from dashflow import Invalid, Session
from dashflow import textual as dtx


class _MockApp:
    """Minimal mock matching the Textual App interface dtx needs."""

    def __init__(self, *, is_running=True):
        self.is_running = is_running
        self._call_from_thread_log = []

    def call_from_thread(self, fn, *args):
        self._call_from_thread_log.append((fn, args))
        fn(*args)


def _session(value=1):
    s = Session()
    s.define_source("o", value)
    return s


class TestObserver:
    def test_skips_when_not_running(self):
        app = _MockApp(is_running=False)
        s = _session()
        effects = []
        dtx.observer(app, s, "view", lambda: s.read("o"), effects.append)
        s.write("o", 2)
        assert effects == []

    def test_keeps_tracking_while_skipped(self):
        app = _MockApp()
        s = _session()
        effects = []
        dtx.observer(app, s, "view", lambda: s.read("o"), effects.append)
        with dtx.pause(app):
            s.write("o", 2)
        s.write("o", 3)
        assert effects == [1, 3]

    def test_fires_when_safe(self):
        app = _MockApp()
        s = _session()
        effects = []
        dtx.observer(app, s, "view", lambda: s.read("o"), effects.append)
        s.write("o", 2)
        assert effects == [1, 2]

    def test_passes_invalid_through(self):
        app = _MockApp()
        s = _session(None)
        effects = []
        dtx.observer(app, s, "view", lambda: s.read("o"), effects.append)
        assert isinstance(effects[0], Invalid)

    def test_catches_nomatch(self):
        """NoMatches from widget queries are silently swallowed."""
        app = _MockApp()
        s = _session()

        def _raise_nomatch(v):
            raise NoMatches("StatusFooter")

        dtx.observer(app, s, "view", lambda: s.read("o"), _raise_nomatch)
        s.write("o", 2)  # should not raise
        assert s.graph.node("view").value == 2

    def test_real_errors_are_logged(self, caplog):
        """Non-NoMatches exceptions go through the engine's effect handling."""
        app = _MockApp()
        s = _session()

        def _raise_value_error(v):
            if v > 1:
                raise ValueError("boom")

        dtx.observer(app, s, "view", lambda: s.read("o"), _raise_value_error)
        with caplog.at_level(logging.ERROR, logger="dashflow.evaluator"):
            s.write("o", 2)
        assert isinstance(s.graph.node("view").value, Invalid)
        assert "boom" in caplog.text

    def test_trigger_mode(self):
        app = _MockApp()
        s = _session()
        effects = []
        dtx.observer(
            app, s, "result", lambda: s.read("o"), effects.append, mode="trigger", trigger_id="go"
        )
        s.write("o", 2)
        assert effects == []
        s.trigger("go")
        assert effects == [2]

    def test_thread_marshal(self):
        """Writes from a background thread use call_from_thread."""
        app = _MockApp()
        s = _session()
        effects = []
        dtx.observer(app, s, "view", lambda: s.read("o"), effects.append)

        def _bg():
            s.write("o", 2)

        t = threading.Thread(target=_bg)
        t.start()
        t.join()

        assert effects == [1, 2]
        assert len(app._call_from_thread_log) >= 1


class TestPause:
    def test_pause_restores_on_exception(self):
        app = _MockApp()
        assert dtx.is_safe(app)

        with pytest.raises(RuntimeError):
            with dtx.pause(app):
                assert not dtx.is_safe(app)
                raise RuntimeError("oops")

        # Restored despite exception
        assert dtx.is_safe(app)

    def test_pause_does_not_mutate_app(self):
        app = _MockApp()
        attrs_before = set(vars(app))
        with dtx.pause(app):
            attrs_during = set(vars(app))
        attrs_after = set(vars(app))
        assert attrs_before == attrs_during, (
            f"pause() added attributes to app: {attrs_during - attrs_before}"
        )
        assert attrs_before == attrs_after

    def test_multiple_apps_independent(self):
        """Pausing one app does not affect another."""
        app_a = _MockApp()
        app_b = _MockApp()
        with dtx.pause(app_a):
            assert not dtx.is_safe(app_a)
            assert dtx.is_safe(app_b)
