"""Enumeration of the files that belong to a filename template."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from ..types import FileFamilyMember
from .pattern import FilenameTemplate


def list_family(directory: Path, template: FilenameTemplate) -> List[FileFamilyMember]:
    """Return plain and compressed files in ``directory`` matching ``template``.

    A missing directory yields an empty list. Files vanishing between the
    listing and the ``stat`` call are skipped.
    """

    directory = Path(directory)
    try:
        entries = os.scandir(directory)
    except FileNotFoundError:
        return []
    members: List[FileFamilyMember] = []
    with entries:
        for entry in entries:
            parsed = template.parse(entry.name)
            if parsed is None:
                continue
            try:
                if not entry.is_file():
                    continue
                mtime = entry.stat().st_mtime
            except FileNotFoundError:
                continue
            key, sequence, compressed = parsed
            members.append(
                FileFamilyMember(
                    path=directory / entry.name,
                    mtime=mtime,
                    sequence=sequence,
                    compressed=compressed,
                    key=key,
                )
            )
    return members


def chronological(
    members: Iterable[FileFamilyMember],
    created: Optional[Mapping[str, float]] = None,
) -> List[FileFamilyMember]:
    """Sort members oldest first.

    Creation times recorded in ``created`` (keyed by logical file name) win
    over modification times.
    """

    created = created or {}

    def _sort_key(member: FileFamilyMember):
        name = member.logical_path.name
        return (created.get(name, member.mtime), member.sequence, name, member.compressed)

    return sorted(members, key=_sort_key)


def group_by_logical(members: Iterable[FileFamilyMember]) -> Dict[Path, List[FileFamilyMember]]:
    """Group a plain file with its compressed counterpart, preserving input order."""

    groups: Dict[Path, List[FileFamilyMember]] = {}
    for member in members:
        groups.setdefault(member.logical_path, []).append(member)
    return groups


__all__ = ["chronological", "group_by_logical", "list_family"]
