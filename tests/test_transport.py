"""Transport surface: stream mode, logging handler and the registry."""

from __future__ import annotations

import io
import json
import logging
import time
from pathlib import Path

import pytest

from dailyrotate import DailyRotateFile, DailyRotateFileHandler
from dailyrotate.errors import (
    ConfigurationError,
    QueryUnavailableError,
    RegistryError,
    TransportClosedError,
)
from dailyrotate.registry import TransportRegistry, register_transport


def test_stream_mode_writes_text() -> None:
    stream = io.StringIO()
    transport = DailyRotateFile(stream=stream)
    logged = []
    transport.on("logged", logged.append)

    assert transport.log("hello") is True
    transport.log(b"bytes too")
    assert stream.getvalue() == "hello\nbytes too\n"
    assert logged == ["hello\n", "bytes too\n"]
    assert transport.current_file is None
    assert transport.state is None


def test_stream_mode_writes_binary() -> None:
    stream = io.BytesIO()
    transport = DailyRotateFile(stream=stream, eol="\r\n")
    transport.log("hello")
    assert stream.getvalue() == b"hello\r\n"


def test_stream_close_keeps_stream_open() -> None:
    stream = io.StringIO()
    transport = DailyRotateFile(stream=stream)
    closed = []
    transport.on("closed", lambda: closed.append(True))
    transport.close()
    transport.close()

    assert closed == [True]
    assert not stream.closed
    with pytest.raises(TransportClosedError):
        transport.log("late")


def test_query_is_unavailable_for_streams() -> None:
    transport = DailyRotateFile(stream=io.StringIO())
    with pytest.raises(QueryUnavailableError):
        transport.query()


@pytest.mark.parametrize(
    "options",
    [
        {},
        {"stream": io.StringIO(), "filename": "app.log"},
        {"stream": io.StringIO(), "max_size": "1m"},
        {"filename": "app.log", "bogus": True},
    ],
)
def test_invalid_configuration(options) -> None:
    with pytest.raises(ConfigurationError):
        DailyRotateFile(options)


def test_camel_case_options(tmp_path: Path, clock) -> None:
    transport = DailyRotateFile(
        {"filename": "app-%DATE%.log", "dirname": str(tmp_path), "datePattern": "YYYY-MM",
         "maxFiles": "7d", "utc": True},
        clock=clock,
    )
    transport.log("monthly")
    transport.close()
    assert (tmp_path / "app-2029-01.log").read_text() == "monthly\n"


def test_context_manager_closes(tmp_path: Path, clock) -> None:
    with DailyRotateFile(filename="app-%DATE%.log", dirname=str(tmp_path), utc=True, clock=clock) as transport:
        transport.log("inside")
        assert transport.current_file == tmp_path / "app-2029-01-01.log"
    assert transport.current_file is None
    with pytest.raises(TransportClosedError):
        transport.log("outside")


def test_logging_handler_round_trip(tmp_path: Path) -> None:
    handler = DailyRotateFileHandler(filename=str(tmp_path / "app-%DATE%.log"), utc=True)
    formatter = logging.Formatter(
        '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}',
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    formatter.converter = time.gmtime
    handler.setFormatter(formatter)
    logger = logging.getLogger("dailyrotate.tests.handler")
    logger.propagate = False
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    try:
        logger.info("first")
        logger.warning("second")
        results = handler.transport.query({"order": "asc"})
    finally:
        logger.removeHandler(handler)
        handler.close()

    assert [(r["level"], r["message"]) for r in results] == [("INFO", "first"), ("WARNING", "second")]
    [path] = list(tmp_path.glob("app-*.log"))
    assert len(path.read_text().splitlines()) == 2


def test_handler_reports_write_failures(tmp_path: Path, monkeypatch) -> None:
    handler = DailyRotateFileHandler(filename=str(tmp_path / "missing" / "app-%DATE%.log"))
    reported = []
    monkeypatch.setattr(handler, "handleError", reported.append)
    record = logging.LogRecord("x", logging.ERROR, __file__, 1, "boom", None, None)
    handler.emit(record)
    handler.close()
    assert reported == [record]


def test_registry_registration_is_idempotent() -> None:
    registry = TransportRegistry()
    register_transport(registry)
    register_transport(registry)

    assert registry.names() == ("daily_rotate_file",)
    assert "daily_rotate_file" in registry
    assert registry.get("daily_rotate_file") is DailyRotateFile
    with pytest.raises(RegistryError):
        registry.register("daily_rotate_file", lambda **kwargs: None)
    with pytest.raises(RegistryError):
        registry.get("unknown")


def test_registry_creates_transport() -> None:
    registry = register_transport(TransportRegistry())
    stream = io.StringIO()
    transport = registry.create("daily_rotate_file", stream=stream)
    transport.log(json.dumps({"ok": True}))
    assert json.loads(stream.getvalue()) == {"ok": True}


def test_stream_follows_new_records_across_rotation(tmp_path: Path, clock) -> None:
    transport = DailyRotateFile(
        filename="app-%DATE%.log", dirname=str(tmp_path), max_size=40, utc=True, clock=clock
    )
    transport.log(json.dumps({"message": "before"}))
    tail = transport.stream(poll_interval=0.01)

    transport.log(json.dumps({"message": "one"}))
    transport.log("not json")
    transport.log(json.dumps({"message": "two"}))
    transport.close()

    assert [record["message"] for record in tail] == ["one", "two"]
    assert tail.path == tmp_path / "app-2029-01-01.log.1"


def test_stream_from_start_with_idle_timeout(tmp_path: Path, clock) -> None:
    transport = DailyRotateFile(
        filename="app-%DATE%.log", dirname=str(tmp_path), utc=True, clock=clock
    )
    transport.log(json.dumps({"message": "first"}))

    with transport.stream(start=0, poll_interval=0.01, idle_timeout=0.05, raw=True) as tail:
        lines = list(tail)

    assert lines == ['{"message": "first"}']
    transport.close()


def test_stream_is_unavailable_for_stream_sinks() -> None:
    transport = DailyRotateFile(stream=io.StringIO())
    with pytest.raises(QueryUnavailableError):
        transport.stream()
