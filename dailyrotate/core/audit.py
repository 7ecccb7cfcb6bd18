"""Persistent record of the files a transport has created."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

LOGGER = logging.getLogger(__name__)


@dataclass
class AuditEntry:
    """Metadata kept for one rotated file."""

    created: str

    def to_dict(self) -> Dict[str, object]:
        return {"created": self.created}

    @property
    def timestamp(self) -> float:
        return datetime.fromisoformat(self.created).timestamp()


class AuditRecord:
    """Track creation times of files written by a transport.

    Entries are keyed by file name (not path) so the record stays valid when
    a directory is moved. Nothing touches the disk until :meth:`save` runs;
    a missing or corrupted file simply starts an empty record, so retention
    never depends on the audit file being present.
    """

    def __init__(self, audit_file: Path):
        self.audit_file = Path(audit_file)
        self._entries: Dict[str, AuditEntry] = {}
        self._dirty = False
        self._lock = Lock()
        self._load()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def record(self, name: str, created: Optional[datetime] = None) -> None:
        """Remember ``name`` as created at ``created`` unless already known."""

        created = created or datetime.now(timezone.utc)
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        with self._lock:
            if name in self._entries:
                return
            self._entries[name] = AuditEntry(created=created.isoformat())
            self._dirty = True

    def remove(self, name: str) -> None:
        with self._lock:
            if self._entries.pop(name, None) is not None:
                self._dirty = True

    def get(self, name: str) -> Optional[AuditEntry]:
        with self._lock:
            return self._entries.get(name)

    def created_times(self) -> Dict[str, float]:
        """Return ``{file name: creation timestamp}`` for every known file."""

        with self._lock:
            entries = dict(self._entries)
        times: Dict[str, float] = {}
        for name, entry in entries.items():
            try:
                times[name] = entry.timestamp
            except ValueError:
                LOGGER.debug("Ignoring unparsable audit timestamp for %s", name)
        return times

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def save(self) -> None:
        """Persist the record with an atomic replace."""

        with self._lock:
            if not self._dirty:
                return
            data = {"files": {name: entry.to_dict() for name, entry in self._entries.items()}}
            self._dirty = False

        self.audit_file.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self.audit_file.parent,
            prefix=".tmp_audit_",
            suffix=".json",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, sort_keys=True)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.audit_file)
        except OSError:
            with self._lock:
                self._dirty = True
            raise
        finally:
            if os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError:
                    LOGGER.debug("Unable to remove temp audit file: %s", tmp_path)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _load(self) -> None:
        if not self.audit_file.exists():
            return

        try:
            raw = json.loads(self.audit_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            LOGGER.warning("Audit file %s is corrupted; starting fresh", self.audit_file)
            return
        except OSError as exc:
            LOGGER.warning("Unable to read audit file %s: %s", self.audit_file, exc)
            return

        files = raw.get("files", {}) if isinstance(raw, dict) else {}
        if not isinstance(files, dict):
            return
        for name, payload in files.items():
            if not isinstance(payload, dict):
                continue
            created = payload.get("created")
            if not isinstance(created, str):
                continue
            self._entries[name] = AuditEntry(created=created)


__all__ = ["AuditEntry", "AuditRecord"]
