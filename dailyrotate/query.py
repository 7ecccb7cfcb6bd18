"""Read-only queries over the JSON lines of a filename family.

Pagination uses a bounded window: ascending queries stop as soon as
``start + rows`` matches were seen, descending queries keep only the newest
``start + rows`` matches in a fixed-size buffer. Files are scanned oldest
first and records are assumed to be chronological within and across files,
which holds for anything written through a rotating transport. A record
appended while a query is running may or may not be returned.
"""
from __future__ import annotations

import gzip
import json
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import IO, Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from .core.family import chronological, group_by_logical, list_family
from .core.pattern import FilenameTemplate
from .types import FileFamilyMember

LOGGER = logging.getLogger(__name__)

DEFAULT_ROWS = 10
DEFAULT_WINDOW = timedelta(hours=24)
ORDERS = ("asc", "desc")

TimeLike = Union[datetime, str, int, float]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string or epoch milliseconds into an aware datetime."""

    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, (int, float)):
        try:
            moment = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


@dataclass(frozen=True)
class QueryOptions:
    """Immutable parameters of a single query."""

    from_: datetime
    until: datetime
    rows: int = DEFAULT_ROWS
    start: int = 0
    order: str = "desc"
    fields: Optional[Tuple[str, ...]] = None
    level: Optional[str] = None

    def __post_init__(self) -> None:
        for name in ("from_", "until"):
            value = getattr(self, name)
            if value.tzinfo is None:
                object.__setattr__(self, name, value.replace(tzinfo=timezone.utc))
        if self.order not in ORDERS:
            raise ValueError(f"order must be one of {ORDERS}, got {self.order!r}")
        if self.rows < 1:
            raise ValueError("rows must be a positive integer")
        if self.start < 0:
            raise ValueError("start must not be negative")
        if self.from_ > self.until:
            raise ValueError("'from' must not be later than 'until'")

    @classmethod
    def from_mapping(
        cls,
        options: Optional[Mapping[str, Any]] = None,
        *,
        now: Optional[datetime] = None,
    ) -> "QueryOptions":
        """Normalize loosely typed query options, filling in the defaults."""

        options = dict(options or {})
        now = now or datetime.now(timezone.utc)

        until = _coerce_time(options.get("until"), "until") or parse_timestamp(now)
        start_time = _coerce_time(options.get("from", options.get("from_")), "from")
        if start_time is None:
            start_time = until - DEFAULT_WINDOW

        rows = options.get("rows") or options.get("limit") or DEFAULT_ROWS
        fields = options.get("fields")
        if isinstance(fields, str):
            fields = [name.strip() for name in fields.split(",") if name.strip()]

        return cls(
            from_=start_time,
            until=until,
            rows=int(rows),
            start=int(options.get("start") or 0),
            order=str(options.get("order") or "desc").lower(),
            fields=tuple(fields) if fields else None,
            level=options.get("level") or None,
        )

    def matches(self, record: Mapping[str, Any]) -> bool:
        moment = parse_timestamp(record.get("timestamp"))
        if moment is None or moment < self.from_ or moment > self.until:
            return False
        return self.level is None or record.get("level") == self.level

    def project(self, record: Dict[str, Any]) -> Dict[str, Any]:
        if not self.fields:
            return record
        return {name: record.get(name) for name in self.fields}


def _coerce_time(value: Optional[TimeLike], name: str) -> Optional[datetime]:
    if value is None or value == "":
        return None
    moment = parse_timestamp(value)
    if moment is None:
        raise ValueError(f"Invalid '{name}' value: {value!r}")
    return moment


def _open_member(member: FileFamilyMember) -> IO[str]:
    if member.compressed:
        return gzip.open(member.path, "rt", encoding="utf-8", errors="replace")
    return open(member.path, "r", encoding="utf-8", errors="replace")


def _read_lines(candidates: Sequence[FileFamilyMember]) -> Iterator[str]:
    """Yield the lines of the first candidate that can still be opened."""

    for member in candidates:
        try:
            handle = _open_member(member)
        except FileNotFoundError:
            LOGGER.debug("Skipping %s, removed during query", member.path)
            continue
        try:
            with handle:
                for line in handle:
                    yield line
        except (OSError, EOFError) as exc:
            LOGGER.warning("Stopped reading %s: %s", member.path, exc)
        return


def _records(
    files: Sequence[Sequence[FileFamilyMember]], options: QueryOptions
) -> Iterator[Dict[str, Any]]:
    for candidates in files:
        for line in _read_lines(candidates):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(record, dict) and options.matches(record):
                yield record


def _readable(members: Sequence[FileFamilyMember]) -> List[List[FileFamilyMember]]:
    """Group members by logical file, uncompressed copy first.

    The archive stays as a fallback for a plain file compressed and removed
    while the query runs.
    """

    return [
        sorted(group, key=lambda member: member.compressed)
        for group in group_by_logical(members).values()
    ]


def query_family(
    directory: Path,
    template: FilenameTemplate,
    options: QueryOptions,
    *,
    created: Optional[Mapping[str, float]] = None,
) -> List[Dict[str, Any]]:
    """Return the records of the family matching ``options``."""

    files = _readable(chronological(list_family(Path(directory), template), created))
    if not files:
        return []

    capacity = options.start + options.rows
    if options.order == "asc":
        results: List[Dict[str, Any]] = []
        skipped = 0
        records = _records(files, options)
        try:
            for record in records:
                if skipped < options.start:
                    skipped += 1
                    continue
                results.append(record)
                if len(results) >= options.rows:
                    break
        finally:
            records.close()
    else:
        window: deque = deque(maxlen=capacity)
        window.extend(_records(files, options))
        results = list(reversed(window))[options.start : capacity]

    return [options.project(record) for record in results]


__all__ = ["DEFAULT_ROWS", "QueryOptions", "parse_timestamp", "query_family"]
