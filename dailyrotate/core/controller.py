"""Rotation controller: owns the active file and decides when to switch."""
from __future__ import annotations

import logging
import os
from collections import deque
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from threading import Lock
from typing import Callable, Deque, List, Optional, Tuple

from ..errors import DailyRotateError, TransportClosedError, TransportFailedError
from ..events import CLOSED, ERROR, FAILED, LOGGED, NEW_FILE, ROTATE, EventEmitter
from ..types import ActiveFile, RotationKey
from .archiver import Archiver, archive_path
from .audit import AuditRecord
from .family import list_family
from .pattern import FilenameTemplate
from .retention import RetentionManager
from .size import should_rotate

LOGGER = logging.getLogger(__name__)

_CREATE_FLAGS = os.O_WRONLY | os.O_APPEND | os.O_CREAT | os.O_EXCL
_APPEND_FLAGS = os.O_WRONLY | os.O_APPEND


class State(str, Enum):
    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"
    ROTATING = "rotating"
    FAILED = "failed"
    ENDED = "ended"


@dataclass
class _Pending:
    data: bytes
    error: Optional[BaseException] = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RotationController:
    """Append records to the file selected by a template, rotating as needed.

    Callers may invoke :meth:`log` from several threads. Records are queued in
    arrival order and written by whichever caller holds the rotation lock, so
    a record arriving while a file is being opened waits in the queue instead
    of being dropped. Events raised while writing are delivered in order
    once the lock is released, so listeners may log themselves. Retention
    picks its victims when a file is opened; the removal itself, archiving
    and audit saves run on a single background worker.
    """

    def __init__(
        self,
        directory: Path,
        template: FilenameTemplate,
        *,
        max_size: Optional[int] = None,
        max_count: Optional[int] = None,
        max_age_days: Optional[float] = None,
        zipped_archive: bool = False,
        use_utc: bool = False,
        create_directories: bool = False,
        max_retries: int = 2,
        audit: Optional[AuditRecord] = None,
        emitter: Optional[EventEmitter] = None,
        clock: Optional[Callable[[], datetime]] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.directory = Path(directory)
        self.template = template
        self.max_size = max_size
        self.use_utc = use_utc
        self.create_directories = create_directories
        self.max_retries = max_retries
        self.audit = audit
        self.emitter = emitter or EventEmitter()
        self._clock = clock or _utc_now

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="dailyrotate"
        )
        self._futures: List[Future] = []
        self._futures_lock = Lock()

        self.archiver = Archiver(self._executor, self.emitter) if zipped_archive else None
        self.retention = RetentionManager(
            self.directory,
            template,
            max_count=max_count,
            max_age_days=max_age_days,
            audit=audit,
            emitter=self.emitter,
            clock=self._clock,
        )

        self._state = State.CLOSED
        self._state_lock = Lock()
        self._rotation_lock = Lock()
        self._pending: Deque[_Pending] = deque()
        self._events: Deque[Tuple[str, Tuple[object, ...]]] = deque()
        self._active: Optional[ActiveFile] = None
        self._last_path: Optional[Path] = None
        self._failure: Optional[BaseException] = None
        self._closing = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def state(self) -> State:
        return self._state

    @property
    def active_path(self) -> Optional[Path]:
        active = self._active
        return active.path if active is not None else None

    @property
    def last_path(self) -> Optional[Path]:
        """The most recently opened file, kept after rotation and close."""

        return self._last_path

    def log(self, data: bytes) -> None:
        """Write ``data`` to the current file, rotating first when required."""

        item = _Pending(data)
        with self._state_lock:
            if self._failure is not None:
                raise TransportFailedError("Transport is in a failed state") from self._failure
            if self._closing:
                raise TransportClosedError("Transport has been closed")
            self._pending.append(item)
        self._drain()
        if item.error is not None:
            raise item.error

    def close(self) -> None:
        """Flush queued records, close the active file and stop accepting writes.

        Background archive and retention jobs already submitted keep running.
        """

        with self._state_lock:
            if self._closing:
                return
            self._closing = True
        self._drain()
        with self._rotation_lock:
            if self._active is not None:
                self._active.close()
                self._active = None
            if self._state is not State.FAILED:
                self._set_state(State.ENDED)
        if self._owns_executor:
            self._executor.shutdown(wait=False)
        self.emitter.emit(CLOSED)

    def wait_for_background(self, timeout: Optional[float] = None) -> bool:
        """Block until submitted archive/retention jobs finish.

        Returns ``False`` if ``timeout`` expired first.
        """

        with self._futures_lock:
            futures = list(self._futures)
        done, not_done = wait(futures, timeout=timeout)
        return not not_done

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------
    def _drain(self) -> None:
        with self._rotation_lock:
            while True:
                with self._state_lock:
                    if not self._pending:
                        break
                    item = self._pending.popleft()
                try:
                    self._write(item.data)
                except DailyRotateError as exc:
                    item.error = exc
            events = list(self._events)
            self._events.clear()
        # Listeners run without the rotation lock so they may call log().
        for event, args in events:
            self.emitter.emit(event, *args)

    def _notify(self, event: str, *args: object) -> None:
        self._events.append((event, args))

    def _write(self, data: bytes) -> None:
        attempts = 0
        while True:
            if self._failure is not None:
                raise TransportFailedError("Transport is in a failed state") from self._failure
            try:
                active = self._ensure_file(len(data))
                active.write(data)
            except OSError as exc:
                attempts += 1
                self._discard_active()
                LOGGER.warning(
                    "Write to %s failed (attempt %d/%d): %s",
                    self.directory,
                    attempts,
                    self.max_retries,
                    exc,
                )
                if attempts >= self.max_retries:
                    self._fail(exc)
                    raise TransportFailedError(f"Unable to write log file: {exc}") from exc
                continue
            self._notify(LOGGED, data)
            return

    def _ensure_file(self, incoming: int) -> ActiveFile:
        now = self._clock()
        active = self._active
        if active is None:
            self._set_state(State.OPENING)
            key = self.template.resolve(now, self.use_utc)
            opened = self._open(key, self._initial_sequence(key), now)
            self._set_state(State.OPEN)
            return opened

        if self.template.pattern.has_expired(active.key, now, self.use_utc):
            key = self.template.resolve(now, self.use_utc)
            if key.value != active.key.value:
                return self._rotate(key, self._initial_sequence(key), now)
            # Same file name for the new period (e.g. an ``HH`` only pattern).
            active = self._active = replace(active, key=key)

        if should_rotate(active.size, incoming, self.max_size):
            sequence = self._next_sequence(active.key, active.sequence + 1)
            return self._rotate(active.key, sequence, now)
        return active

    def _rotate(self, key: RotationKey, sequence: int, now: datetime) -> ActiveFile:
        old = self._active
        self._set_state(State.ROTATING)
        self._active = None
        if old is not None:
            old.close()
            if self.archiver is not None:
                self._track(self.archiver.archive(old.path))
        opened = self._open(key, sequence, now)
        if old is not None:
            LOGGER.info("Rotated %s -> %s", old.path.name, opened.path.name)
            self._notify(ROTATE, old.path, opened.path)
        self._set_state(State.OPEN)
        return opened

    def _open(self, key: RotationKey, sequence: int, now: datetime) -> ActiveFile:
        path = self.directory / self.template.name_for(key, sequence)
        if self.create_directories:
            path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(path, _CREATE_FLAGS, 0o644)
            created = True
        except FileExistsError:
            fd = os.open(path, _APPEND_FLAGS)
            created = False
        try:
            size = os.fstat(fd).st_size
            handle = os.fdopen(fd, "ab")
        except OSError:
            os.close(fd)
            raise
        active = ActiveFile(
            path=path, handle=handle, key=key, sequence=sequence, size=size, created=created
        )
        self._active = active
        self._last_path = path
        LOGGER.debug("Opened %s (size=%d, created=%s)", path, size, created)

        if created:
            self._notify(NEW_FILE, path)
        if created and self.audit is not None:
            self.audit.record(path.name, now)
        self._track(self._executor.submit(self._housekeeping, self._plan_retention(path)))
        return active

    def _plan_retention(self, active_path: Path) -> List[Path]:
        """Pick the files to remove while the family cannot change underneath."""

        try:
            return self.retention.plan(protect=(active_path,))
        except OSError as exc:
            LOGGER.warning("Unable to list %s for retention: %s", self.directory, exc)
            self._notify(ERROR, exc)
            return []

    def _initial_sequence(self, key: RotationKey) -> int:
        members = [
            member
            for member in list_family(self.directory, self.template)
            if member.key == key.value
        ]
        if not members:
            return 0
        highest = max(member.sequence for member in members)
        if any(member.sequence == highest and member.compressed for member in members):
            highest += 1
        return self._next_sequence(key, highest)

    def _next_sequence(self, key: RotationKey, sequence: int) -> int:
        """Return the first sequence at or after ``sequence`` that can take writes."""

        while True:
            path = self.directory / self.template.name_for(key, sequence)
            if archive_path(path).exists():
                sequence += 1
                continue
            if self.max_size is None:
                return sequence
            try:
                size = path.stat().st_size
            except FileNotFoundError:
                return sequence
            if size < self.max_size:
                return sequence
            sequence += 1

    def _discard_active(self) -> None:
        active = self._active
        self._active = None
        if active is not None:
            try:
                active.close()
            except OSError:
                LOGGER.debug("Ignoring error while closing %s", active.path)
        self._set_state(State.CLOSED)

    def _fail(self, exc: BaseException) -> None:
        with self._state_lock:
            if self._failure is not None:
                return
            self._failure = exc
            self._state = State.FAILED
        LOGGER.error("Transport for %s entered failed state: %s", self.directory, exc)
        self._notify(FAILED, exc)

    def _set_state(self, state: State) -> None:
        with self._state_lock:
            if self._state is not State.FAILED:
                self._state = state

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------
    def _track(self, future: Future) -> None:
        with self._futures_lock:
            self._futures = [f for f in self._futures if not f.done()]
            self._futures.append(future)

    def _housekeeping(self, doomed: List[Path]) -> None:
        try:
            self.retention.apply(doomed)
            if self.audit is not None:
                self.audit.save()
        except OSError as exc:
            LOGGER.warning("Housekeeping for %s failed: %s", self.directory, exc)
            self.emitter.emit(ERROR, exc)


__all__ = ["RotationController", "State"]
