"""Failure handling, concurrency and lifecycle of the rotation controller."""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path

import pytest

from dailyrotate.core.controller import RotationController, State
from dailyrotate.core.pattern import FilenameTemplate
from dailyrotate.errors import TransportClosedError, TransportFailedError
from dailyrotate.events import EventEmitter


def _controller(directory: Path, clock, **kwargs) -> RotationController:
    template = FilenameTemplate("app-%DATE%.log", "YYYY-MM-DD")
    return RotationController(directory, template, use_utc=True, clock=clock, **kwargs)


def test_missing_directory_enters_failed_state(tmp_path: Path, clock) -> None:
    emitter = EventEmitter()
    failures = []
    emitter.on("failed", failures.append)
    controller = _controller(tmp_path / "missing", clock, emitter=emitter)

    with pytest.raises(TransportFailedError):
        controller.log(b"first\n")
    assert controller.state is State.FAILED
    assert len(failures) == 1

    with pytest.raises(TransportFailedError):
        controller.log(b"second\n")
    assert len(failures) == 1
    assert not (tmp_path / "missing").exists()
    controller.close()


def test_retries_before_failing(tmp_path: Path, clock, monkeypatch) -> None:
    import dailyrotate.core.controller as controller_module

    calls = []
    real_open = controller_module.os.open

    def flaky_open(path, flags, *args):
        if not str(path).endswith(".log"):
            return real_open(path, flags, *args)
        calls.append(path)
        if len(calls) == 1:
            raise PermissionError("busy")
        return real_open(path, flags, *args)

    monkeypatch.setattr(controller_module.os, "open", flaky_open)
    controller = _controller(tmp_path, clock)
    controller.log(b"eventually\n")
    controller.close()

    assert len(calls) == 2
    assert (tmp_path / "app-2029-01-01.log").read_bytes() == b"eventually\n"


def test_create_directories_builds_missing_tree(tmp_path: Path, clock) -> None:
    target = tmp_path / "a" / "b"
    controller = _controller(target, clock, create_directories=True)
    controller.log(b"ok\n")
    assert controller.state is State.OPEN
    controller.close()
    assert controller.state is State.ENDED
    assert (target / "app-2029-01-01.log").read_bytes() == b"ok\n"


def test_log_after_close_is_rejected(tmp_path: Path, clock) -> None:
    emitter = EventEmitter()
    closed = []
    emitter.on("closed", lambda: closed.append(True))
    controller = _controller(tmp_path, clock, emitter=emitter)
    controller.log(b"before\n")
    controller.close()
    controller.close()

    assert closed == [True]
    assert controller.active_path is None
    with pytest.raises(TransportClosedError):
        controller.log(b"after\n")


def test_sequential_writes_keep_arrival_order_across_rotations(tmp_path: Path, clock) -> None:
    controller = _controller(tmp_path, clock, max_size=50)
    for number in range(20):
        controller.log(f"{number:02d} {'x' * 20}\n".encode())
    controller.close()

    files = sorted(
        tmp_path.glob("app-2029-01-01.log*"),
        key=lambda path: int(path.name.rsplit(".", 1)[1]) if path.suffix != ".log" else 0,
    )
    lines = [line for path in files for line in path.read_text().splitlines()]
    assert [int(line.split()[0]) for line in lines] == list(range(20))
    assert all(path.stat().st_size <= 50 + 24 for path in files)


def test_concurrent_writers_lose_no_records(tmp_path: Path, clock) -> None:
    controller = _controller(tmp_path, clock, max_size=2048)
    barrier = threading.Barrier(8)

    def worker(thread_id: int) -> None:
        barrier.wait()
        for index in range(50):
            record = {"thread": thread_id, "index": index, "pad": "y" * 40}
            controller.log((json.dumps(record) + "\n").encode())

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    controller.close()
    assert controller.wait_for_background(timeout=5)

    records = []
    for path in tmp_path.glob("app-*.log*"):
        for line in path.read_text().splitlines():
            records.append(json.loads(line))
    assert len(records) == 400
    for thread_id in range(8):
        indexes = [r["index"] for r in records if r["thread"] == thread_id]
        assert sorted(indexes) == list(range(50))


def test_descriptor_closed_when_open_setup_fails(tmp_path: Path, clock, monkeypatch) -> None:
    import dailyrotate.core.controller as controller_module

    real_open, real_fstat, real_close = os.open, os.fstat, os.close
    opened, closed, failures = [], [], []

    def tracking_open(path, flags, *args):
        fd = real_open(path, flags, *args)
        if str(path).endswith(".log"):
            opened.append(fd)
        return fd

    def flaky_fstat(fd):
        if fd in opened and not failures:
            failures.append(fd)
            raise OSError("stat failed")
        return real_fstat(fd)

    def tracking_close(fd):
        closed.append(fd)
        return real_close(fd)

    monkeypatch.setattr(controller_module.os, "open", tracking_open)
    monkeypatch.setattr(controller_module.os, "fstat", flaky_fstat)
    monkeypatch.setattr(controller_module.os, "close", tracking_close)

    controller = _controller(tmp_path, clock)
    controller.log(b"recovered\n")
    controller.close()

    assert failures and failures[0] in closed
    assert (tmp_path / "app-2029-01-01.log").read_bytes() == b"recovered\n"
