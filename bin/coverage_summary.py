#!/usr/bin/env python3
"""
Coverage summary for a Julia package.

Prints a table of the tracked files under a directory (default: src/) with
the number of tracked lines ("Total"), lines with coverage ("Hit"), lines
without coverage ("Missed") and the coverage percentage.

Usage:
  coverage_summary.py                      # src/, sorted by path
  coverage_summary.py --sort-by missed     # most missed lines first
  coverage_summary.py --sort-by coverage --ascending
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from coverage_common import (
    ConfigurationError, CoverageReport, FileCoverage, InvalidSortKeyError,
    collect_coverage,
)

logger = logging.getLogger(__name__)

SORT_KEYS = {
    "file": lambda fc: fc.filename,
    "total": lambda fc: fc.total,
    "hit": lambda fc: fc.hit,
    "missed": lambda fc: fc.missed,
    # N/A ranks below any real percentage
    "coverage": lambda fc: -1.0 if fc.coverage_pct is None else fc.coverage_pct,
}

SORT_KEY_ALIASES = {
    "path": "file",
    "coverage%": "coverage",
}

COLUMNS = ("File", "Total", "Hit", "Missed", "Coverage%")


def resolve_sort_key(name: Optional[str]) -> Optional[str]:
    """Map a user supplied column name onto a SORT_KEYS entry."""
    if name is None:
        return None
    key = name.strip().lower()
    key = SORT_KEY_ALIASES.get(key, key)
    if key not in SORT_KEYS:
        choices = ", ".join(SORT_KEYS)
        raise InvalidSortKeyError(f"unknown sort key {name!r} (choose from: {choices})")
    return key


def sorted_files(report: CoverageReport, sort_by: Optional[str] = None,
                 ascending: bool = False) -> List[FileCoverage]:
    key = resolve_sort_key(sort_by)
    files = list(report.files.values())
    if key is None:
        return sorted(files, key=SORT_KEYS["file"])
    return sorted(files, key=SORT_KEYS[key], reverse=not ascending)


def format_pct(pct: Optional[float]) -> str:
    if pct is None:
        return "N/A"
    return f"{pct:.1f}"


def format_coverage_table(files: List[FileCoverage]) -> List[str]:
    """Render rows as fixed-width text lines, header and ruler included."""
    name_width = max([len(COLUMNS[0])] + [len(fc.filename) for fc in files])
    header = (f"{COLUMNS[0]:<{name_width}}  {COLUMNS[1]:>6}  {COLUMNS[2]:>6}  "
              f"{COLUMNS[3]:>6}  {COLUMNS[4]:>9}")
    lines = [header, "=" * len(header)]
    for fc in files:
        lines.append(
            f"{fc.filename:<{name_width}}  {fc.total:>6}  {fc.hit:>6}  "
            f"{fc.missed:>6}  {format_pct(fc.coverage_pct):>9}"
        )
    return lines


def print_coverage_table(report: CoverageReport, sort_by: Optional[str] = None,
                         ascending: bool = False, file=None):
    """Print the summary table for report.

    The sort key is validated before anything is written.
    """
    if file is None:
        file = sys.stdout
    files = sorted_files(report, sort_by, ascending)
    for line in format_coverage_table(files):
        print(line, file=file)


def show_coverage(path="src", sort_by: Optional[str] = None, ascending: bool = False,
                  root=None, file=None) -> CoverageReport:
    """Print a coverage summary from existing .cov files in path."""
    resolve_sort_key(sort_by)
    report = collect_coverage(path, root=root)
    if not report.files:
        logger.warning("No coverage data found in %s", path)
    print_coverage_table(report, sort_by, ascending, file=file)
    return report


def main(argv=None):
    parser = argparse.ArgumentParser(description="Print a coverage summary from Julia .cov files")
    parser.add_argument("path", nargs="?", default="src", help="Directory to scan (default: src)")
    parser.add_argument("--sort-by", help=f"Sort by column: {', '.join(SORT_KEYS)} (descending)")
    parser.add_argument("--ascending", action="store_true", help="Sort ascending instead of descending")
    parser.add_argument("--root", default=".", help="Paths are shown relative to this directory")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    if not Path(args.path).is_dir():
        print(f"error: coverage directory '{args.path}' does not exist", file=sys.stderr)
        return 2

    try:
        report = show_coverage(args.path, args.sort_by, args.ascending, root=args.root)
    except ConfigurationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    return 0 if report.files else 1


if __name__ == "__main__":
    sys.exit(main())
