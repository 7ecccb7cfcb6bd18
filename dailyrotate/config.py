"""Option parsing and validation for rotating file transports."""
from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import IO, Any, Dict, Mapping, Optional, Tuple, Union

from .core.size import parse_max_size
from .errors import ConfigurationError

DEFAULT_DATE_PATTERN = "YYYY-MM-DD"
DEFAULT_FILENAME = "dailyrotate.log.%DATE%"
DEFAULT_MAX_RETRIES = 2

_INVALID_FILENAME = re.compile(r'["<>|:*?\\/\x00-\x1f]')
_INVALID_DIRNAME = re.compile(r'["<>|\x00-\x1f]')
_DAYS = re.compile(r"^\s*(\d+)\s*d\s*$", re.IGNORECASE)

_ALIASES = {
    "datePattern": "date_pattern",
    "maxSize": "max_size",
    "maxsize": "max_size",
    "maxFiles": "max_files",
    "maxDays": "max_days",
    "zippedArchive": "zipped_archive",
    "createDirectories": "create_directories",
    "createTree": "create_directories",
    "auditFile": "audit_file",
    "maxRetries": "max_retries",
}


@dataclass(frozen=True)
class TransportOptions:
    """Immutable configuration of a single transport instance."""

    filename: Optional[str] = None
    dirname: Optional[str] = None
    date_pattern: str = DEFAULT_DATE_PATTERN
    max_size: Optional[Union[int, str]] = None
    max_files: Optional[Union[int, str]] = None
    max_days: Optional[float] = None
    zipped_archive: bool = False
    utc: bool = False
    create_directories: bool = False
    audit_file: Optional[str] = None
    stream: Optional[IO[Any]] = None
    prepend: bool = False
    eol: str = "\n"
    max_retries: int = DEFAULT_MAX_RETRIES

    def __post_init__(self) -> None:
        if self.stream is not None:
            for name in ("filename", "dirname", "max_size"):
                if getattr(self, name):
                    raise ConfigurationError(f"Cannot set {name} and stream together")
            return

        if not self.filename and not self.dirname:
            raise ConfigurationError("Cannot log to file without filename or stream")
        if _INVALID_FILENAME.search(self.basename):
            raise ConfigurationError(f"Filename contains an invalid character: {self.basename!r}")
        if _INVALID_DIRNAME.search(self.directory):
            raise ConfigurationError(f"Directory contains an invalid character: {self.directory!r}")
        if self.max_retries < 1:
            raise ConfigurationError("max_retries must be at least 1")
        if self.max_days is not None and self.max_days < 0:
            raise ConfigurationError("max_days must not be negative")
        self.retention()

    # ------------------------------------------------------------------
    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "TransportOptions":
        """Build options from a mapping using either snake_case or camelCase keys."""

        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in mapping.items():
            if key == "localTime":
                values["utc"] = not value
                continue
            name = _ALIASES.get(key, key)
            if name not in known:
                raise ConfigurationError(f"Unknown option '{key}'")
            values[name] = value
        return cls(**values)

    @property
    def is_stream(self) -> bool:
        return self.stream is not None

    @property
    def basename(self) -> str:
        if not self.filename:
            return DEFAULT_FILENAME
        return Path(self.filename).name

    @property
    def directory(self) -> str:
        if self.dirname:
            return str(self.dirname)
        if self.filename:
            return str(Path(self.filename).parent)
        return "."

    @property
    def max_size_bytes(self) -> Optional[int]:
        return parse_max_size(self.max_size)

    def retention(self) -> Tuple[Optional[int], Optional[float]]:
        """Return ``(max_count, max_age_days)`` derived from the options."""

        max_count: Optional[int] = None
        max_age: Optional[float] = self.max_days or None
        value = self.max_files
        if value is None or value == "" or value == 0:
            return max_count, max_age
        if isinstance(value, bool):
            raise ConfigurationError(f"Invalid max_files value: {value!r}")
        if isinstance(value, int):
            max_count = value
        elif isinstance(value, str) and value.strip().isdigit():
            max_count = int(value.strip())
        elif isinstance(value, str) and _DAYS.match(value):
            days = int(_DAYS.match(value).group(1))
            max_age = days if max_age is None else min(max_age, days)
        else:
            raise ConfigurationError(f"Invalid max_files value: {value!r}")
        if max_count is not None and max_count < 1:
            raise ConfigurationError("max_files must be a positive count")
        return max_count, max_age

    def options_hash(self) -> str:
        """Stable digest of the file-related options, used to name the audit file."""

        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "stream"}
        payload = json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha1(payload.encode("utf-8")).hexdigest()

    def audit_path(self) -> Path:
        if self.audit_file:
            return Path(self.audit_file)
        return Path(self.directory) / f".{self.options_hash()}-audit.json"


__all__ = ["DEFAULT_DATE_PATTERN", "DEFAULT_FILENAME", "TransportOptions"]
