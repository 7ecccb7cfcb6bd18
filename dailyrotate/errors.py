"""Exception hierarchy shared by the rotation engine."""
from __future__ import annotations


class DailyRotateError(RuntimeError):
    """Base class for errors raised by the rotating file transport."""


class ConfigurationError(DailyRotateError, ValueError):
    """Raised at construction time when options conflict or are invalid."""


class TransportFailedError(DailyRotateError):
    """Raised by ``log()`` once the transport has entered its failed state."""


class TransportClosedError(DailyRotateError):
    """Raised when writing to a transport after ``close()``."""


class QueryUnavailableError(DailyRotateError):
    """Raised when querying a transport that has no file family."""


class RegistryError(DailyRotateError):
    """Raised when transport registration conflicts with an existing entry."""


__all__ = [
    "ConfigurationError",
    "DailyRotateError",
    "QueryUnavailableError",
    "RegistryError",
    "TransportClosedError",
    "TransportFailedError",
]
