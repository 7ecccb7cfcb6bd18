"""Unit tests for transport option validation."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from dailyrotate.config import TransportOptions
from dailyrotate.errors import ConfigurationError


def test_filename_directory_becomes_dirname(tmp_path: Path) -> None:
    options = TransportOptions(filename=str(tmp_path / "logs" / "app-%DATE%.log"))
    assert options.basename == "app-%DATE%.log"
    assert options.directory == str(tmp_path / "logs")


def test_camel_case_mapping() -> None:
    options = TransportOptions.from_mapping(
        {
            "filename": "app.log",
            "datePattern": "YYYY-MM-DD-HH",
            "maxSize": "1k",
            "maxFiles": "14d",
            "zippedArchive": True,
            "localTime": False,
        }
    )
    assert options.date_pattern == "YYYY-MM-DD-HH"
    assert options.max_size_bytes == 1024
    assert options.retention() == (None, 14)
    assert options.zipped_archive is True
    assert options.utc is True


def test_unknown_option_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        TransportOptions.from_mapping({"filename": "app.log", "colorize": True})


@pytest.mark.parametrize("conflict", ["filename", "dirname", "max_size"])
def test_stream_conflicts_with_file_options(conflict: str) -> None:
    with pytest.raises(ConfigurationError):
        TransportOptions.from_mapping({"stream": io.StringIO(), conflict: "100"})


def test_requires_filename_or_stream() -> None:
    with pytest.raises(ConfigurationError):
        TransportOptions()


@pytest.mark.parametrize("filename", ["bad<name>.log", "what?.log", "tab\tname.log"])
def test_invalid_filename_characters(filename: str) -> None:
    with pytest.raises(ConfigurationError):
        TransportOptions(filename=filename, dirname="logs")


def test_invalid_dirname_characters() -> None:
    with pytest.raises(ConfigurationError):
        TransportOptions(filename="app.log", dirname='lo"gs')


@pytest.mark.parametrize(
    ("max_files", "expected"),
    [(5, (5, None)), ("7", (7, None)), ("3d", (None, 3)), (None, (None, None))],
)
def test_retention_values(max_files, expected) -> None:
    assert TransportOptions(filename="app.log", max_files=max_files).retention() == expected


def test_invalid_max_files() -> None:
    with pytest.raises(ConfigurationError):
        TransportOptions(filename="app.log", max_files="forever")


def test_audit_file_name_depends_on_options(tmp_path: Path) -> None:
    first = TransportOptions(filename="a.log", dirname=str(tmp_path))
    second = TransportOptions(filename="b.log", dirname=str(tmp_path))
    assert first.audit_path().parent == tmp_path
    assert first.audit_path().name.endswith("-audit.json")
    assert first.audit_path() != second.audit_path()
    assert first.options_hash() == TransportOptions(filename="a.log", dirname=str(tmp_path)).options_hash()

    override = TransportOptions(filename="a.log", audit_file=str(tmp_path / "audit.json"))
    assert override.audit_path() == tmp_path / "audit.json"
