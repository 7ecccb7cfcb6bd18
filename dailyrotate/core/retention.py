"""Count and age based retention for a filename family."""
from __future__ import annotations

import logging
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Collection, Iterable, List, Mapping, Optional

from ..events import ERROR, FILE_REMOVED, EventEmitter
from ..types import GZIP_SUFFIX, FileFamilyMember
from .archiver import archive_path
from .audit import AuditRecord
from .family import chronological, group_by_logical, list_family
from .pattern import FilenameTemplate

LOGGER = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

ErrorCallback = Callable[[Path, OSError], None]


def select(
    members: Iterable[FileFamilyMember],
    max_count: Optional[int] = None,
    max_age_days: Optional[float] = None,
    *,
    now: Optional[float] = None,
    protect: Collection[Path] = (),
    created: Optional[Mapping[str, float]] = None,
) -> List[Path]:
    """Return the logical paths that fall outside the retention policy.

    A plain file and its ``.gz`` counterpart count as one file. ``max_count``
    keeps the newest files, ``max_age_days`` drops anything last modified
    before the cutoff; the union of both is returned, oldest first. Only
    files ordered before the oldest path in ``protect`` are eligible.
    """

    if not max_count and not max_age_days:
        return []

    protected = {Path(path) for path in protect}
    groups = group_by_logical(chronological(members, created))
    logical = list(groups)
    eligible = logical
    for index, path in enumerate(logical):
        if path in protected:
            eligible = logical[:index]
            break

    doomed: List[Path] = []
    if max_count:
        excess = len(logical) - max_count
        doomed.extend(eligible[: max(excess, 0)])

    if max_age_days:
        now = time.time() if now is None else now
        cutoff = now - max_age_days * SECONDS_PER_DAY
        for path in eligible:
            if path in doomed:
                continue
            if max(member.mtime for member in groups[path]) < cutoff:
                doomed.append(path)
    return doomed


def remove_files(doomed: Iterable[Path], on_error: Optional[ErrorCallback] = None) -> List[Path]:
    """Delete each logical file together with its archive.

    Files that are already gone are ignored; any other removal failure goes
    to ``on_error``. Returns the paths actually removed.
    """

    removed: List[Path] = []
    for logical in doomed:
        for target in (Path(logical), archive_path(Path(logical))):
            try:
                os.remove(target)
            except FileNotFoundError:
                continue
            except OSError as exc:
                LOGGER.warning("Unable to remove %s: %s", target, exc)
                if on_error is not None:
                    on_error(target, exc)
                continue
            removed.append(target)
    return removed


def prune(
    members: Iterable[FileFamilyMember],
    max_count: Optional[int] = None,
    max_age_days: Optional[float] = None,
    *,
    now: Optional[float] = None,
    protect: Collection[Path] = (),
    created: Optional[Mapping[str, float]] = None,
    on_error: Optional[ErrorCallback] = None,
) -> List[Path]:
    """Select and delete in one step; see :func:`select` and :func:`remove_files`."""

    doomed = select(
        members, max_count, max_age_days, now=now, protect=protect, created=created
    )
    return remove_files(doomed, on_error)


class RetentionManager:
    """Apply :func:`prune` to the files of one transport."""

    def __init__(
        self,
        directory: Path,
        template: FilenameTemplate,
        *,
        max_count: Optional[int] = None,
        max_age_days: Optional[float] = None,
        audit: Optional[AuditRecord] = None,
        emitter: Optional[EventEmitter] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.directory = Path(directory)
        self.template = template
        self.max_count = max_count
        self.max_age_days = max_age_days
        self.audit = audit
        self.emitter = emitter or EventEmitter()
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return bool(self.max_count or self.max_age_days)

    def plan(self, protect: Collection[Path] = ()) -> List[Path]:
        """List the family now and return the logical files due for removal."""

        if not self.enabled:
            return []
        members = list_family(self.directory, self.template)
        created = self.audit.created_times() if self.audit is not None else None
        now = self._clock().timestamp() if self._clock is not None else None
        return select(
            members,
            self.max_count,
            self.max_age_days,
            now=now,
            protect=protect,
            created=created,
        )

    def apply(self, doomed: Iterable[Path]) -> List[Path]:
        removed = remove_files(doomed, on_error=self._report)
        for path in removed:
            LOGGER.info("Removed %s (retention)", path.name)
            if self.audit is not None:
                name = path.name
                if name.endswith(GZIP_SUFFIX):
                    name = name[: -len(GZIP_SUFFIX)]
                self.audit.remove(name)
            self.emitter.emit(FILE_REMOVED, path)
        return removed

    def enforce(self, protect: Collection[Path] = ()) -> List[Path]:
        return self.apply(self.plan(protect))

    def _report(self, path: Path, exc: OSError) -> None:
        self.emitter.emit(ERROR, exc)


__all__ = ["RetentionManager", "prune", "remove_files", "select"]
