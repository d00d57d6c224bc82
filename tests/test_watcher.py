"""
Tests for the mtime-polling watcher.
"""

import os
import threading
from pathlib import Path

from genie.core.services.watcher import poll_changes, snapshot, watch


def _touch(path: Path, mtime_ns: int) -> None:
    path.write_text("x")
    os.utime(path, ns=(mtime_ns, mtime_ns))


class TestPollChanges:
    def test_new_and_modified(self, tmp_path: Path):
        a = tmp_path / "a.json.genie.py"
        b = tmp_path / "b.json.genie.py"
        _touch(a, 1_000_000_000)
        previous = snapshot([a])

        _touch(a, 2_000_000_000)
        _touch(b, 1_000_000_000)
        current, changed = poll_changes(previous, [b, a])

        assert changed == [a, b]
        assert set(current) == {a, b}

    def test_unchanged(self, tmp_path: Path):
        a = tmp_path / "a.json.genie.py"
        _touch(a, 1_000_000_000)

        _, changed = poll_changes(snapshot([a]), [a])

        assert changed == []

    def test_deleted_template_drops_out(self, tmp_path: Path):
        a = tmp_path / "a.json.genie.py"
        _touch(a, 1_000_000_000)
        previous = snapshot([a])
        a.unlink()

        current, changed = poll_changes(previous, [a])

        assert current == {}
        assert changed == []


class TestWatch:
    def _discover(self, path: Path, mtimes: list[int | None], stop: threading.Event):
        """Each call applies the next mtime (None = unchanged); stops when exhausted."""
        steps = iter(mtimes)

        def discover() -> list[Path]:
            step = next(steps, "done")
            if step == "done":
                stop.set()
            elif step is not None:
                _touch(path, step)
            return [path]

        return discover

    def test_regenerates_changed_then_stops(self, tmp_path: Path):
        a = tmp_path / "a.json.genie.py"
        _touch(a, 1_000_000_000)
        stop = threading.Event()
        calls: list[list[Path]] = []

        watch(self._discover(a, [None, 2_000_000_000, None], stop), calls.append, interval=0.01, stop=stop)

        assert calls == [[a]]

    def test_regenerate_error_keeps_watching(self, tmp_path: Path):
        a = tmp_path / "a.json.genie.py"
        _touch(a, 1_000_000_000)
        stop = threading.Event()
        seen: list[int] = []

        def regenerate(changed: list[Path]) -> None:
            seen.append(len(changed))
            raise RuntimeError("template broke")

        watch(self._discover(a, [None, 2_000_000_000, 3_000_000_000], stop), regenerate, interval=0.01, stop=stop)

        assert seen == [1, 1]

    def test_discovery_error_skips_cycle(self, tmp_path: Path):
        a = tmp_path / "a.json.genie.py"
        _touch(a, 1_000_000_000)
        stop = threading.Event()
        calls = iter(["ok", "boom", "stop"])

        def discover() -> list[Path]:
            step = next(calls)
            if step == "boom":
                raise OSError("gone")
            if step == "stop":
                stop.set()
            return [a]

        watch(discover, lambda changed: None, interval=0.01, stop=stop)

        assert stop.is_set()
