"""Shared value types consumed across the rotation engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Tuple

GZIP_SUFFIX = ".gz"


@dataclass(frozen=True)
class RotationKey:
    """Concrete rotation token value for a point in time.

    ``value`` is what gets substituted into the filename template while
    ``period`` holds the calendar fields truncated at the pattern's finest
    unit and is what expiry checks compare.
    """

    value: str
    period: Tuple[int, ...] = ()


@dataclass(frozen=True)
class FileFamilyMember:
    """A file on disk that belongs to a transport's filename family."""

    path: Path
    mtime: float
    sequence: int = 0
    compressed: bool = False
    key: str = ""

    @property
    def logical_path(self) -> Path:
        """Path of the uncompressed file this member stands for."""

        if self.compressed:
            return self.path.with_name(self.path.name[: -len(GZIP_SUFFIX)])
        return self.path


@dataclass
class ActiveFile:
    """The file currently being appended to by a rotation controller."""

    path: Path
    handle: BinaryIO
    key: RotationKey
    sequence: int = 0
    size: int = 0
    created: bool = field(default=False)

    def write(self, data: bytes) -> None:
        self.handle.write(data)
        self.handle.flush()
        self.size += len(data)

    def close(self) -> None:
        if not self.handle.closed:
            self.handle.close()


__all__ = [
    "ActiveFile",
    "FileFamilyMember",
    "GZIP_SUFFIX",
    "RotationKey",
]
