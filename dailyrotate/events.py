"""Lifecycle event subscription for rotating transports."""
from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Callable, Dict, List

LOGGER = logging.getLogger(__name__)

NEW_FILE = "new-file"
ROTATE = "rotate"
FILE_REMOVED = "file-removed"
ARCHIVED = "archived"
ERROR = "error"
FAILED = "failed"
LOGGED = "logged"
CLOSED = "closed"

EVENTS = (NEW_FILE, ROTATE, FILE_REMOVED, ARCHIVED, ERROR, FAILED, LOGGED, CLOSED)

Listener = Callable[..., Any]


class EventEmitter:
    """Minimal observer registry.

    Listeners are invoked synchronously on the thread that emits the event,
    in subscription order. A listener raising an exception is logged and
    does not prevent the remaining listeners from running.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = {}
        self._lock = Lock()

    def on(self, event: str, listener: Listener) -> Listener:
        if event not in EVENTS:
            raise ValueError(f"Unknown event '{event}'")
        with self._lock:
            self._listeners.setdefault(event, []).append(listener)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        with self._lock:
            listeners = self._listeners.get(event, [])
            if listener in listeners:
                listeners.remove(listener)

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> None:
        with self._lock:
            listeners = list(self._listeners.get(event, []))
        for listener in listeners:
            try:
                listener(*args)
            except Exception:  # noqa: BLE001 - listeners must not break emitters
                LOGGER.exception("Listener for '%s' event failed", event)


__all__ = [
    "ARCHIVED",
    "CLOSED",
    "ERROR",
    "EVENTS",
    "EventEmitter",
    "FAILED",
    "FILE_REMOVED",
    "LOGGED",
    "NEW_FILE",
    "ROTATE",
]
