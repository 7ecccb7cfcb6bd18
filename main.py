"""Application entry point for the rotating log command line tool."""
from __future__ import annotations

from dailyrotate.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
