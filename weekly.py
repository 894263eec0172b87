#!/usr/bin/env python3
"""
Current #1 records verified in the last N days (markdown to stdout).

Usage: weekly.py [--days N] [--limit N]   (both 1..3650; bad values fall back)
"""

import argparse
import sys

from report.current import collect_current, render_current
from srcom.client import SpeedrunClient

DEFAULT_DAYS  = 7
DEFAULT_LIMIT = 50
THROTTLE_S    = 0.12  # polite pause between leaderboard checks


def bounded_int(value: str, fallback: int) -> int:
    try:
        v = int(value)
    except (TypeError, ValueError):
        return fallback
    return v if 1 <= v <= 3650 else fallback


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Current #1 records verified recently")
    parser.add_argument("--days", default=str(DEFAULT_DAYS))
    parser.add_argument("--limit", default=str(DEFAULT_LIMIT))
    args = parser.parse_args(argv)

    days = bounded_int(args.days, DEFAULT_DAYS)
    limit = bounded_int(args.limit, DEFAULT_LIMIT)

    rows = collect_current(SpeedrunClient(), days=days, limit=limit, throttle=THROTTLE_S)
    sys.stdout.write(render_current(rows, days))
    return 0


if __name__ == "__main__":
    sys.exit(main())
