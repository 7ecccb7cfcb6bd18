"""Follow the records a transport appends to its active file."""
from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, BinaryIO, Callable, Iterator, Optional

LOGGER = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.25


class LogTail:
    """Iterate over lines appended to a rotating file family.

    Reading starts at byte offset ``start`` of ``path``, or at its current
    end when ``start`` is ``None``; the offset is fixed when the tail is
    created, not when iteration begins. Whenever ``follow()`` reports a
    different file, the rest of the current one is read first and the new
    one is then followed from its beginning. A file opened and retired
    between two polls is not visited.

    Iteration yields decoded JSON objects (or raw text lines with
    ``raw=True``) and ends after :meth:`close`, once ``finished()`` is true
    and everything written has been read, or after ``idle_timeout`` seconds
    without new data.
    """

    def __init__(
        self,
        path: Optional[Path],
        follow: Callable[[], Optional[Path]],
        finished: Callable[[], bool],
        *,
        start: Optional[int] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        idle_timeout: Optional[float] = None,
        raw: bool = False,
    ) -> None:
        self.path = path
        self.poll_interval = poll_interval
        self.idle_timeout = idle_timeout
        self.raw = raw
        self._follow = follow
        self._finished = finished
        self._closed = False
        self._handle = self._open(path, start)

    def __iter__(self) -> Iterator[Any]:
        pending = b""
        idle_since = time.monotonic()
        try:
            while not self._closed:
                finished = self._finished()
                data = self._handle.read() if self._handle is not None else b""
                if data:
                    pending += data
                    *lines, pending = pending.split(b"\n")
                    for line in lines:
                        item = self._decode(line)
                        if item is not None:
                            yield item
                    idle_since = time.monotonic()
                    continue

                latest = self._follow()
                if latest is not None and latest != self.path:
                    if pending:
                        item = self._decode(pending)
                        if item is not None:
                            yield item
                    pending = b""
                    self._switch(latest)
                    continue
                if self._handle is None and self.path is not None:
                    self._handle = self._open(self.path, 0)
                    if self._handle is not None:
                        continue

                if finished:
                    return
                idle = time.monotonic() - idle_since
                if self.idle_timeout is not None and idle >= self.idle_timeout:
                    return
                time.sleep(self.poll_interval)
        finally:
            self.close()

    def close(self) -> None:
        self._closed = True
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "LogTail":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    def _switch(self, path: Path) -> None:
        if self._handle is not None:
            self._handle.close()
        LOGGER.debug("Tail moving from %s to %s", self.path, path)
        self.path = path
        self._handle = self._open(path, 0)

    @staticmethod
    def _open(path: Optional[Path], offset: Optional[int]) -> Optional[BinaryIO]:
        if path is None:
            return None
        try:
            handle = open(path, "rb")
        except FileNotFoundError:
            return None
        if offset is None:
            handle.seek(0, 2)
        else:
            handle.seek(offset)
        return handle

    def _decode(self, line: bytes) -> Any:
        text = line.rstrip(b"\r").decode("utf-8", errors="replace")
        if self.raw:
            return text
        if not text.strip():
            return None
        try:
            record = json.loads(text)
        except json.JSONDecodeError:
            LOGGER.debug("Skipping non-JSON line in %s", self.path)
            return None
        return record if isinstance(record, dict) else None


__all__ = ["LogTail"]
