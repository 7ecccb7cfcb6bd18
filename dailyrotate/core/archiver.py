"""Background gzip compression of rotated files."""
from __future__ import annotations

import gzip
import logging
import os
import shutil
from concurrent.futures import Executor, Future
from pathlib import Path
from typing import Optional

from ..events import ARCHIVED, ERROR, EventEmitter
from ..types import GZIP_SUFFIX

LOGGER = logging.getLogger(__name__)


def archive_path(path: Path) -> Path:
    path = Path(path)
    return path.with_name(path.name + GZIP_SUFFIX)


def compress_file(path: Path) -> Optional[Path]:
    """Gzip ``path`` next to itself and delete the original.

    Returns the archive path, or ``None`` when there was nothing to do
    because the source is gone or an archive already exists. The source is
    only deleted once the archive has been moved into place.
    """

    source = Path(path)
    target = archive_path(source)
    if target.exists():
        LOGGER.debug("Archive already exists for %s", source)
        return None
    try:
        stat = source.stat()
    except FileNotFoundError:
        LOGGER.debug("Nothing to archive, %s is gone", source)
        return None

    partial = target.with_name(target.name + ".tmp")
    try:
        with source.open("rb") as f_in, gzip.open(partial, "wb") as f_out:
            shutil.copyfileobj(f_in, f_out)
        os.utime(partial, (stat.st_atime, stat.st_mtime))
        os.replace(partial, target)
    finally:
        if partial.exists():
            try:
                partial.unlink()
            except OSError:
                LOGGER.debug("Unable to remove partial archive: %s", partial)

    if not target.is_file():
        raise OSError(f"Archive {target} missing after compression")
    try:
        source.unlink()
    except FileNotFoundError:
        pass
    return target


class Archiver:
    """Submit :func:`compress_file` jobs to an executor and report the outcome."""

    def __init__(self, executor: Executor, emitter: Optional[EventEmitter] = None) -> None:
        self._executor = executor
        self.emitter = emitter or EventEmitter()

    def archive(self, path: Path) -> "Future[Optional[Path]]":
        return self._executor.submit(self._run, Path(path))

    def _run(self, path: Path) -> Optional[Path]:
        try:
            result = compress_file(path)
        except OSError as exc:
            LOGGER.warning("Failed to archive %s: %s", path, exc)
            self.emitter.emit(ERROR, exc)
            return None
        if result is not None:
            LOGGER.info("Archived %s", result.name)
            self.emitter.emit(ARCHIVED, result)
        return result


__all__ = ["Archiver", "archive_path", "compress_file"]
