"""Date pattern tokenizer and filename templates.

A date pattern is a small format language (``YYYY-MM-DD``, ``.yyyy-MM-dd``,
``YYYYMMDDHHmm`` ...) whose tokens map to calendar fields. Resolving a
pattern at an instant produces a :class:`RotationKey`; the key's ``period``
holds the calendar fields down to the finest unit the pattern mentions so
that expiry compares only what the pattern can express.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Pattern, Tuple, Union

from ..types import GZIP_SUFFIX, RotationKey

PLACEHOLDER = "%DATE%"

YEAR, MONTH, DAY, HOUR, MINUTE = range(5)
_UNIT_NAMES = ("year", "month", "day", "hour", "minute")
_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

_TOKEN = re.compile(r"\[[^\]]*\]|YYYY|yyyy|YY|yy|MM|M|ddd|DDD|DD|dd|D|d|HH|H|mm|m")

# token -> (unit, formatter, regex)
_TOKENS: Dict[str, Tuple[int, Callable[[datetime], str], str]] = {
    "YYYY": (YEAR, lambda m: f"{m.year:04d}", r"\d{4}"),
    "YY": (YEAR, lambda m: f"{m.year % 100:02d}", r"\d{2}"),
    "MM": (MONTH, lambda m: f"{m.month:02d}", r"\d{2}"),
    "M": (MONTH, lambda m: str(m.month), r"\d{1,2}"),
    "DD": (DAY, lambda m: f"{m.day:02d}", r"\d{2}"),
    "D": (DAY, lambda m: str(m.day), r"\d{1,2}"),
    "ddd": (DAY, lambda m: _WEEKDAYS[m.weekday()], r"[A-Z][a-z]{2}"),
    "HH": (HOUR, lambda m: f"{m.hour:02d}", r"\d{2}"),
    "H": (HOUR, lambda m: str(m.hour), r"\d{1,2}"),
    "mm": (MINUTE, lambda m: f"{m.minute:02d}", r"\d{2}"),
    "m": (MINUTE, lambda m: str(m.minute), r"\d{1,2}"),
}
_SPELLINGS = {"yyyy": "YYYY", "yy": "YY", "dd": "DD", "d": "D", "DDD": "ddd"}


def _calendar(instant: datetime, use_utc: bool) -> datetime:
    """Return ``instant`` expressed in the requested calendar.

    Naive datetimes are taken to already be in that calendar.
    """

    if instant.tzinfo is None:
        return instant
    return instant.astimezone(timezone.utc) if use_utc else instant.astimezone()


class DatePattern:
    """A tokenized date pattern."""

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        self._segments: List[Tuple[bool, str]] = []
        position = 0
        for match in _TOKEN.finditer(pattern):
            if match.start() > position:
                self._segments.append((False, pattern[position:match.start()]))
            text = match.group(0)
            if text.startswith("["):
                self._segments.append((False, text[1:-1]))
            else:
                self._segments.append((True, _SPELLINGS.get(text, text)))
            position = match.end()
        if position < len(pattern):
            self._segments.append((False, pattern[position:]))

        units = [_TOKENS[text][0] for is_token, text in self._segments if is_token]
        self.granularity: Optional[int] = max(units) if units else None

    def __repr__(self) -> str:
        return f"DatePattern({self.pattern!r})"

    @property
    def unit_name(self) -> Optional[str]:
        if self.granularity is None:
            return None
        return _UNIT_NAMES[self.granularity]

    @property
    def regex(self) -> str:
        """Regular expression matching any value this pattern can resolve to."""

        parts = []
        for is_token, text in self._segments:
            parts.append(_TOKENS[text][2] if is_token else re.escape(text))
        return "".join(parts)

    def format(self, instant: datetime, use_utc: bool = False) -> str:
        moment = _calendar(instant, use_utc)
        return "".join(
            _TOKENS[text][1](moment) if is_token else text
            for is_token, text in self._segments
        )

    def period(self, instant: datetime, use_utc: bool = False) -> Tuple[int, ...]:
        if self.granularity is None:
            return ()
        moment = _calendar(instant, use_utc)
        fields = (moment.year, moment.month, moment.day, moment.hour, moment.minute)
        return fields[: self.granularity + 1]

    def resolve(self, instant: datetime, use_utc: bool = False) -> RotationKey:
        return RotationKey(self.format(instant, use_utc), self.period(instant, use_utc))

    def has_expired(self, key: RotationKey, now: datetime, use_utc: bool = False) -> bool:
        if self.granularity is None:
            return False
        return self.period(now, use_utc) > key.period


@lru_cache(maxsize=64)
def compile_pattern(pattern: str) -> DatePattern:
    return DatePattern(pattern)


TemplateLike = Union[str, DatePattern, "FilenameTemplate"]


def _as_pattern(template: TemplateLike) -> DatePattern:
    if isinstance(template, FilenameTemplate):
        return template.pattern
    if isinstance(template, DatePattern):
        return template
    return compile_pattern(template)


def resolve(template: TemplateLike, instant: datetime, use_utc: bool = False) -> RotationKey:
    """Resolve the rotation key of ``template`` at ``instant``."""

    return _as_pattern(template).resolve(instant, use_utc)


def has_expired(
    old_key: RotationKey, template: TemplateLike, now: datetime, use_utc: bool = False
) -> bool:
    """Return ``True`` once ``now`` falls in a later period than ``old_key``."""

    return _as_pattern(template).has_expired(old_key, now, use_utc)


class FilenameTemplate:
    """Maps rotation keys and overflow sequences to file names.

    ``%DATE%`` inside ``filename`` marks where the key goes. Without it the
    key is appended to the name, or put in front of it when ``prepend`` is
    set, with a ``.`` between the two unless the pattern supplies one.
    Size overflow files carry a ``.<n>`` suffix and archived ones an extra
    ``.gz``.
    """

    def __init__(self, filename: str, date_pattern: str, *, prepend: bool = False) -> None:
        if prepend and PLACEHOLDER not in filename and date_pattern.startswith("."):
            date_pattern = date_pattern[1:] + "."
        self.filename = filename
        self.pattern = compile_pattern(date_pattern)
        self.prepend = prepend
        if PLACEHOLDER in filename:
            self.prefix, self.suffix = filename.split(PLACEHOLDER, 1)
        elif prepend:
            separator = "" if date_pattern.endswith(".") or filename.startswith(".") else "."
            self.prefix, self.suffix = "", separator + filename
        else:
            separator = "" if date_pattern.startswith(".") or filename.endswith(".") else "."
            self.prefix, self.suffix = filename + separator, ""
        self._family: Optional[Pattern[str]] = None

    def __repr__(self) -> str:
        return f"FilenameTemplate({self.filename!r}, {self.pattern.pattern!r})"

    def resolve(self, instant: datetime, use_utc: bool = False) -> RotationKey:
        return self.pattern.resolve(instant, use_utc)

    def name_for(self, key: RotationKey, sequence: int = 0) -> str:
        name = f"{self.prefix}{key.value}{self.suffix}"
        if sequence:
            name = f"{name}.{sequence}"
        return name

    def family_regex(self) -> Pattern[str]:
        if self._family is None:
            self._family = re.compile(
                "^"
                + re.escape(self.prefix)
                + f"(?P<key>{self.pattern.regex})"
                + re.escape(self.suffix)
                + r"(?:\.(?P<seq>\d+))?"
                + f"(?P<gz>{re.escape(GZIP_SUFFIX)})?$"
            )
        return self._family

    def parse(self, name: str) -> Optional[Tuple[str, int, bool]]:
        """Return ``(key, sequence, compressed)`` for a family file name."""

        match = self.family_regex().match(name)
        if match is None:
            return None
        sequence = int(match.group("seq")) if match.group("seq") else 0
        return match.group("key"), sequence, bool(match.group("gz"))


__all__ = [
    "DatePattern",
    "FilenameTemplate",
    "PLACEHOLDER",
    "compile_pattern",
    "has_expired",
    "resolve",
]
