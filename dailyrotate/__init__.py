"""Date and size based log file rotation with retention, archiving and queries."""

from .config import TransportOptions
from .core.controller import State
from .core.pattern import FilenameTemplate, has_expired, resolve
from .errors import (
    ConfigurationError,
    DailyRotateError,
    QueryUnavailableError,
    RegistryError,
    TransportClosedError,
    TransportFailedError,
)
from .handler import DailyRotateFileHandler
from .query import QueryOptions
from .registry import TransportRegistry, register_transport
from .tail import LogTail
from .transport import DailyRotateFile
from .types import FileFamilyMember, RotationKey

__version__ = "1.0.0"

__all__ = [
    "ConfigurationError",
    "DailyRotateError",
    "DailyRotateFile",
    "DailyRotateFileHandler",
    "FileFamilyMember",
    "FilenameTemplate",
    "LogTail",
    "QueryOptions",
    "QueryUnavailableError",
    "RegistryError",
    "RotationKey",
    "State",
    "TransportClosedError",
    "TransportFailedError",
    "TransportOptions",
    "TransportRegistry",
    "has_expired",
    "register_transport",
    "resolve",
]
