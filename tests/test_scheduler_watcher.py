"""Tests for src.shared.scheduler and src.monitor.watcher."""

from __future__ import annotations

import threading
from pathlib import Path
from types import SimpleNamespace

import pytest

from src.monitor.watcher import DirectoryWatcher, PathEventHandler
from src.shared.scheduler import PeriodicTask


class TestPeriodicTask:
    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            PeriodicTask("x", 0, lambda: None)

    def test_runs_until_stopped(self):
        ran = threading.Event()
        task = PeriodicTask("tick", 0.01, ran.set)
        task.start()
        assert ran.wait(2.0)
        task.stop()
        assert not task.running

    def test_exception_does_not_kill_loop(self):
        calls = []
        done = threading.Event()

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first run fails")
            done.set()

        task = PeriodicTask("flaky", 0.01, flaky)
        task.start()
        assert done.wait(2.0)
        task.stop()


def _event(src: str, dest: str = "", is_directory: bool = False):
    return SimpleNamespace(src_path=src, dest_path=dest, is_directory=is_directory)


class TestPathEventHandler:
    def test_modified_and_created_route_to_change(self):
        changed = []
        h = PathEventHandler(on_change=changed.append)
        h.on_modified(_event("/logs/a.log"))
        h.on_created(_event("/logs/b.log"))
        assert changed == [Path("/logs/a.log"), Path("/logs/b.log")]

    def test_directories_ignored(self):
        changed = []
        h = PathEventHandler(on_change=changed.append)
        h.on_modified(_event("/logs", is_directory=True))
        assert changed == []

    def test_accept_filter(self):
        changed = []
        h = PathEventHandler(on_change=changed.append, accept=lambda p: p.suffix == ".log")
        h.on_modified(_event("/logs/a.txt"))
        h.on_modified(_event(b"/logs/a.log"))
        assert changed == [Path("/logs/a.log")]

    def test_move_is_delete_plus_change(self):
        changed, deleted = [], []
        h = PathEventHandler(on_change=changed.append, on_delete=deleted.append)
        h.on_moved(_event("/x/server.js", "/x/server.js.bak"))
        assert deleted == [Path("/x/server.js")]
        assert changed == [Path("/x/server.js.bak")]

    def test_callback_error_contained(self):
        def boom(_p):
            raise RuntimeError("handler failed")

        PathEventHandler(on_change=boom).on_modified(_event("/a.log"))


class TestDirectoryWatcher:
    def test_start_stop(self, tmp_path):
        w = DirectoryWatcher("test-watcher")
        w.watch(tmp_path, PathEventHandler(on_change=lambda p: None))
        w.watch(tmp_path / "missing", PathEventHandler(on_change=lambda p: None))
        w.start()
        assert w.running
        w.stop()
        assert not w.running
