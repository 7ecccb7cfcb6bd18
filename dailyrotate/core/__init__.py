"""Rotation engine primitives exposed as a convenience import."""

from .archiver import Archiver, compress_file
from .audit import AuditRecord
from .controller import RotationController, State
from .family import list_family
from .pattern import DatePattern, FilenameTemplate, has_expired, resolve
from .retention import RetentionManager, prune, remove_files, select
from .size import parse_max_size, should_rotate

__all__ = [
    "Archiver",
    "AuditRecord",
    "DatePattern",
    "FilenameTemplate",
    "RetentionManager",
    "RotationController",
    "State",
    "compress_file",
    "has_expired",
    "list_family",
    "parse_max_size",
    "prune",
    "remove_files",
    "resolve",
    "select",
    "should_rotate",
]
