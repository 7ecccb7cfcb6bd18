"""Size based rotation decisions."""
from __future__ import annotations

import logging
import re
from typing import Optional, Union

LOGGER = logging.getLogger(__name__)

_UNITS = {"k": 1024, "m": 1024 ** 2, "g": 1024 ** 3}
_SIZE = re.compile(r"^\s*(\d+(?:\.\d+)?|\.\d+)\s*([kmg])?b?\s*$", re.IGNORECASE)


def parse_max_size(value: Union[int, float, str, None]) -> Optional[int]:
    """Convert a byte count or a ``k``/``m``/``g`` unit string to bytes.

    Returns ``None`` (no limit) when the value is empty, not positive or
    cannot be parsed.
    """

    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        size = int(value)
    else:
        match = _SIZE.match(str(value))
        if not match:
            LOGGER.warning("Ignoring unparsable max size %r", value)
            return None
        number, unit = match.groups()
        size = int(float(number) * _UNITS.get((unit or "").lower(), 1))
    return size if size > 0 else None


def should_rotate(current_size: int, incoming_bytes: int, max_size: Optional[int]) -> bool:
    """Return ``True`` when the active file is full before writing ``incoming_bytes``.

    The check only looks at what was already written, so a single write is
    never split and the active file may end slightly larger than ``max_size``.
    """

    del incoming_bytes  # the decision is made on the size before the write
    return max_size is not None and current_size >= max_size


__all__ = ["parse_max_size", "should_rotate"]
