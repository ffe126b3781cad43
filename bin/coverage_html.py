#!/usr/bin/env python3
"""
HTML coverage report for a Julia package.

Aggregates the .cov files under a directory into an LCOV tracefile
(<covdir>/lcov.info) and hands it to genhtml (part of the lcov package),
which writes the HTML report into <covdir>.

Usage:
  coverage_html.py                              # src/ -> coverage/index.html
  coverage_html.py --covdir build/coverage
  coverage_html.py --genhtml /opt/lcov/bin/genhtml
"""

import argparse
import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Optional

from coverage_common import (
    CoverageReport, ReportToolError, ReportToolFailedError,
    ReportToolUnavailableError, collect_coverage,
)

logger = logging.getLogger(__name__)

DEFAULT_GENHTML = "genhtml"
LCOV_FILENAME = "lcov.info"


def find_genhtml(genhtml: str = DEFAULT_GENHTML) -> str:
    """Resolve genhtml (a name on PATH or a path) to an executable path."""
    found = shutil.which(genhtml)
    if not found:
        raise ReportToolUnavailableError(
            f"{genhtml} not found or not executable (it is part of the lcov package)"
        )
    # genhtml runs in root, so a relative path must not stay relative
    return os.path.abspath(found)


def write_lcov_file(report: CoverageReport, output_path: Path) -> Path:
    """Write report as an LCOV tracefile."""
    with open(output_path, "w", encoding="utf-8") as f:
        for filename, fc in report.files.items():
            f.write(f"SF:{filename}\n")
            for line in fc.lines:
                if line.tracked:
                    f.write(f"DA:{line.line_no},{line.hit_count}\n")
            f.write(f"LF:{fc.total}\n")
            f.write(f"LH:{fc.hit}\n")
            f.write("end_of_record\n")
    return output_path


def generate_coverage_html(path="src", covdir="coverage", genhtml: str = DEFAULT_GENHTML,
                           root=None, report: Optional[CoverageReport] = None) -> Path:
    """Write an HTML report for the .cov files in path into covdir.

    genhtml runs in root so that the relative file names in the tracefile
    resolve. A report that was already collected can be passed in to avoid
    a second scan.

    Raises ReportToolUnavailableError if genhtml cannot be run and
    ReportToolFailedError if it exits with a nonzero status.
    """
    tool = find_genhtml(genhtml)
    root = Path(root if root is not None else os.getcwd())
    output_dir = Path(covdir)
    if not output_dir.is_absolute():
        output_dir = root / output_dir
    output_dir.mkdir(parents=True, exist_ok=True)

    if report is None:
        report = collect_coverage(path, root=root)
    lcov_path = write_lcov_file(report, output_dir / LCOV_FILENAME)

    cmd = [tool, "-o", str(output_dir), str(lcov_path)]
    logger.info("Running '%s'", " ".join(cmd))
    try:
        result = subprocess.run(cmd, cwd=str(root))
    except OSError as e:
        raise ReportToolUnavailableError(f"could not run {tool}: {e}") from e
    if result.returncode != 0:
        raise ReportToolFailedError(tool, result.returncode)

    return output_dir


def main(argv=None):
    parser = argparse.ArgumentParser(description="Generate an HTML coverage report with genhtml")
    parser.add_argument("path", nargs="?", default="src", help="Directory to scan (default: src)")
    parser.add_argument("--covdir", default="coverage", help="Output directory (default: coverage)")
    parser.add_argument("--genhtml", default=DEFAULT_GENHTML, help="genhtml executable (default: genhtml)")
    parser.add_argument("--root", default=".", help="Directory genhtml runs in (default: .)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        output_dir = generate_coverage_html(args.path, args.covdir, args.genhtml, root=args.root)
    except ReportToolError as e:
        logger.warning("%s", e)
        return 1

    print(f"HTML: {output_dir}/index.html")
    return 0


if __name__ == "__main__":
    sys.exit(main())
