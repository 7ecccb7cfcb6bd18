"""Bridge from the standard library ``logging`` package to a rotating transport."""
from __future__ import annotations

import logging
from typing import Any, Optional

from .errors import DailyRotateError
from .transport import DailyRotateFile


class DailyRotateFileHandler(logging.Handler):
    """``logging.Handler`` that forwards formatted records to :class:`DailyRotateFile`.

    Formatting stays with the handler's formatter; the transport only decides
    which file each line lands in. Keyword arguments are transport options,
    so the handler can be declared in ``logging.config.dictConfig``::

        "handlers": {
            "file": {
                "class": "dailyrotate.handler.DailyRotateFileHandler",
                "filename": "logs/app-%DATE%.log",
                "max_files": "14d",
            }
        }
    """

    def __init__(
        self,
        transport: Optional[DailyRotateFile] = None,
        level: int = logging.NOTSET,
        **options: Any,
    ) -> None:
        super().__init__(level)
        self.transport = transport or DailyRotateFile(**options)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.transport.log(self.format(record))
        except (DailyRotateError, OSError):
            self.handleError(record)

    def close(self) -> None:
        try:
            self.transport.close()
        finally:
            super().close()


__all__ = ["DailyRotateFileHandler"]
