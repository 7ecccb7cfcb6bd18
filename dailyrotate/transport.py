"""The rotating file transport: a single entry point over the rotation engine."""
from __future__ import annotations

import dataclasses
import io
import logging
from concurrent.futures import Executor
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .config import TransportOptions
from .core.audit import AuditRecord
from .core.controller import RotationController, State
from .core.pattern import FilenameTemplate
from .errors import QueryUnavailableError, TransportClosedError
from .events import CLOSED, ERROR, LOGGED, EventEmitter, Listener
from .query import QueryOptions, query_family
from .tail import DEFAULT_POLL_INTERVAL, LogTail

LOGGER = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DailyRotateFile:
    """Append formatted log lines to date and size rotated files.

    Construct it with a :class:`TransportOptions`, a mapping of options, or
    keyword arguments. With ``stream`` set the transport writes straight to
    that object and rotation, retention and querying are unavailable.
    """

    name = "daily_rotate_file"

    def __init__(
        self,
        options: Union[TransportOptions, Mapping[str, Any], None] = None,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        executor: Optional[Executor] = None,
        **kwargs: Any,
    ) -> None:
        if isinstance(options, TransportOptions):
            self.options = dataclasses.replace(options, **kwargs) if kwargs else options
        else:
            merged: Dict[str, Any] = dict(options or {})
            merged.update(kwargs)
            self.options = TransportOptions.from_mapping(merged)

        self.emitter = EventEmitter()
        self._clock = clock or _utc_now
        self._stream_lock = Lock()
        self._closed = False

        self.sink = self.options.stream
        self.filename: Optional[str] = None
        self.dirname: Optional[Path] = None
        self.template: Optional[FilenameTemplate] = None
        self.audit: Optional[AuditRecord] = None
        self.controller: Optional[RotationController] = None

        if self.sink is None:
            self.filename = self.options.basename
            self.dirname = Path(self.options.directory)
            self.template = FilenameTemplate(
                self.filename, self.options.date_pattern, prepend=self.options.prepend
            )
            max_count, max_age_days = self.options.retention()
            self.audit = AuditRecord(self.options.audit_path())
            self.controller = RotationController(
                self.dirname,
                self.template,
                max_size=self.options.max_size_bytes,
                max_count=max_count,
                max_age_days=max_age_days,
                zipped_archive=self.options.zipped_archive,
                use_utc=self.options.utc,
                create_directories=self.options.create_directories,
                max_retries=self.options.max_retries,
                audit=self.audit,
                emitter=self.emitter,
                clock=self._clock,
                executor=executor,
            )

    def __repr__(self) -> str:
        if self.template is None:
            return f"{type(self).__name__}(stream={self.sink!r})"
        return f"{type(self).__name__}(dirname={str(self.dirname)!r}, filename={self.filename!r})"

    # ------------------------------------------------------------------
    def on(self, event: str, listener: Listener) -> Listener:
        return self.emitter.on(event, listener)

    def off(self, event: str, listener: Listener) -> None:
        self.emitter.off(event, listener)

    @property
    def state(self) -> Optional[State]:
        return self.controller.state if self.controller is not None else None

    @property
    def current_file(self) -> Optional[Path]:
        return self.controller.active_path if self.controller is not None else None

    # ------------------------------------------------------------------
    def log(self, message: Union[str, bytes]) -> bool:
        """Write one already formatted line; the line terminator is appended here."""

        if isinstance(message, bytes):
            message = message.decode("utf-8")
        line = f"{message}{self.options.eol}"
        if self.controller is not None:
            self.controller.log(line.encode("utf-8"))
        else:
            self._write_stream(line)
        return True

    def query(
        self, options: Union[QueryOptions, Mapping[str, Any], None] = None
    ) -> List[Dict[str, Any]]:
        """Return the JSON records of this transport's files matching ``options``."""

        if self.template is None or self.dirname is None:
            raise QueryUnavailableError("query() may not be used when writing to a stream")
        if not isinstance(options, QueryOptions):
            options = QueryOptions.from_mapping(options, now=self._clock())
        created = self.audit.created_times() if self.audit is not None else None
        return query_family(self.dirname, self.template, options, created=created)

    def stream(
        self,
        start: Optional[int] = None,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        idle_timeout: Optional[float] = None,
        raw: bool = False,
    ) -> LogTail:
        """Follow records appended from now on (or from byte ``start`` of the current file).

        The returned :class:`LogTail` moves to the next file when the
        transport rotates and stops once the transport is closed.
        """

        if self.controller is None or self.template is None or self.dirname is None:
            raise QueryUnavailableError("stream() may not be used when writing to a stream")
        controller = self.controller
        path = controller.active_path or controller.last_path
        if path is None:
            key = self.template.resolve(self._clock(), self.options.utc)
            path = self.dirname / self.template.name_for(key)
        return LogTail(
            path,
            follow=lambda: controller.active_path or controller.last_path,
            finished=lambda: controller.state in (State.ENDED, State.FAILED),
            start=start,
            poll_interval=poll_interval,
            idle_timeout=idle_timeout,
            raw=raw,
        )

    def close(self) -> None:
        """Flush pending writes and stop accepting new ones."""

        if self.controller is not None:
            self.controller.close()
            return
        with self._stream_lock:
            if self._closed:
                return
            self._closed = True
            flush = getattr(self.sink, "flush", None)
            if callable(flush):
                flush()
        self.emitter.emit(CLOSED)

    def wait_for_background(self, timeout: Optional[float] = None) -> bool:
        if self.controller is None:
            return True
        return self.controller.wait_for_background(timeout)

    def __enter__(self) -> "DailyRotateFile":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    def _write_stream(self, line: str) -> None:
        stream = self.sink
        binary = isinstance(stream, (io.RawIOBase, io.BufferedIOBase)) or "b" in str(
            getattr(stream, "mode", "")
        )
        with self._stream_lock:
            if self._closed:
                raise TransportClosedError("Transport has been closed")
            try:
                stream.write(line.encode("utf-8") if binary else line)
            except OSError as exc:
                LOGGER.warning("Write to stream failed: %s", exc)
                self.emitter.emit(ERROR, exc)
                raise
        self.emitter.emit(LOGGED, line)


__all__ = ["DailyRotateFile"]
