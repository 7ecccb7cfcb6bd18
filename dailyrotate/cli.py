"""Command line interface for the rotating file transport."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

from .errors import DailyRotateError
from .transport import DailyRotateFile

_OPTION_FLAGS = ("filename", "dirname", "date_pattern", "max_size", "max_files", "audit_file")


def _load_config(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return {}
    data = json.loads(Path(path).read_text("utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Config file '{path}' must contain a JSON object")
    return data


def build_transport(args: argparse.Namespace) -> DailyRotateFile:
    options = _load_config(args.config)
    for name in _OPTION_FLAGS:
        value = getattr(args, name)
        if value is not None:
            options[name] = value
    for flag in ("zipped_archive", "utc", "create_directories"):
        if getattr(args, flag):
            options[flag] = True
    return DailyRotateFile(options)


def _add_transport_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="JSON file with transport options")
    parser.add_argument("--filename", help="File name template, may contain %%DATE%%")
    parser.add_argument("--dirname", help="Directory holding the log files")
    parser.add_argument("--date-pattern", dest="date_pattern", help="Rotation date pattern")
    parser.add_argument("--max-size", dest="max_size", help="Size limit, e.g. 10m")
    parser.add_argument("--max-files", dest="max_files", help="File count or '<n>d' days")
    parser.add_argument("--audit-file", dest="audit_file")
    parser.add_argument("--zipped-archive", dest="zipped_archive", action="store_true")
    parser.add_argument("--utc", action="store_true", help="Use UTC calendar fields")
    parser.add_argument("--create-directories", dest="create_directories", action="store_true")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Date and size rotated log files")
    parser.add_argument("--log-level", default="WARNING")
    commands = parser.add_subparsers(dest="command", required=True)

    write = commands.add_parser("write", help="Append stdin lines to the rotating files")
    _add_transport_arguments(write)

    query = commands.add_parser("query", help="Print JSON records matching a query")
    _add_transport_arguments(query)
    query.add_argument("--from", dest="from_")
    query.add_argument("--until")
    query.add_argument("--rows", type=int)
    query.add_argument("--start", type=int)
    query.add_argument("--order", choices=("asc", "desc"))
    query.add_argument("--fields", help="Comma separated field names")
    query.add_argument("--level")
    return parser


def _write(transport: DailyRotateFile, source: TextIO) -> int:
    count = 0
    for line in source:
        transport.log(line.rstrip("\r\n"))
        count += 1
    return count


def main(argv: List[str] | None = None, stdin: TextIO | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        transport = build_transport(args)
    except (DailyRotateError, ValueError) as exc:
        parser.error(str(exc))

    try:
        if args.command == "write":
            count = _write(transport, stdin or sys.stdin)
            current = transport.current_file
            transport.close()
            transport.wait_for_background()
            print(json.dumps({"written": count, "file": str(current or "")}))
            return 0

        query = {
            "from": args.from_,
            "until": args.until,
            "rows": args.rows,
            "start": args.start,
            "order": args.order,
            "fields": args.fields,
            "level": args.level,
        }
        results = transport.query({key: value for key, value in query.items() if value is not None})
        print(json.dumps(results, indent=2, sort_keys=True))
        return 0
    except DailyRotateError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        parser.error(str(exc))
    finally:
        transport.close()


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
