#!/usr/bin/env python3
"""
Shared coverage data structures and parsing logic for the jltest tools.

Julia writes one ``.cov`` artifact per source file when started with
``--code-coverage``: ``src/Foo.jl`` gets ``src/Foo.jl.cov`` (or
``src/Foo.jl.<pid>.cov``, one per process). Every artifact line mirrors the
source line at the same position, prefixed by a 9-character count field:

            - module Foo        (not tracked)
            3 f(x) = x + 1      (hit three times)
            0 g(x) = x - 1      (tracked, never hit)
"""

import logging
import os
import re
from pathlib import Path
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

NOT_TRACKED = -1
COV_SUFFIX = ".cov"
COUNT_FIELD_WIDTH = 9

_COV_LINE_RE = re.compile(r'^\s*(-|\d+)(?:\s|$)')
_PID_SUFFIX_RE = re.compile(r'^(?P<source>.+)\.(?P<pid>\d+)$')


class JLTestError(Exception):
    """Base class for errors raised by the jltest tools."""


class ConfigurationError(JLTestError, ValueError):
    """The run configuration is invalid; nothing was started."""


class InvalidSortKeyError(ConfigurationError):
    """Unknown column name passed as a summary sort key."""


class LaunchError(JLTestError):
    """The test subprocess could not be started."""


class CoverageParseError(JLTestError):
    """A coverage artifact contains a line without a valid count field."""

    def __init__(self, path, line_no: int, content: str):
        super().__init__(f"{path}:{line_no}: cannot parse coverage count in {content!r}")
        self.path = path
        self.line_no = line_no
        self.content = content


class ReportToolError(JLTestError):
    """The external HTML report generator could not produce a report."""


class ReportToolUnavailableError(ReportToolError):
    """The report generator executable is missing or not executable."""


class ReportToolFailedError(ReportToolError):
    """The report generator ran but exited with a nonzero status."""

    def __init__(self, tool: str, returncode: int):
        super().__init__(f"{tool} exited with code {returncode}")
        self.tool = tool
        self.returncode = returncode


@dataclass(frozen=True)
class LineRecord:
    line_no: int
    hit_count: int = NOT_TRACKED

    @property
    def tracked(self) -> bool:
        return self.hit_count >= 0

    @property
    def hit(self) -> bool:
        return self.hit_count > 0

    @property
    def missed(self) -> bool:
        return self.hit_count == 0


@dataclass
class FileCoverage:
    filename: str
    lines: list = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(1 for l in self.lines if l.tracked)

    @property
    def hit(self) -> int:
        return sum(1 for l in self.lines if l.hit)

    @property
    def missed(self) -> int:
        return sum(1 for l in self.lines if l.missed)

    @property
    def coverage_pct(self) -> Optional[float]:
        """Percentage of tracked lines that were hit, None without tracked lines."""
        total = self.total
        if total == 0:
            return None
        return (self.hit / total) * 100


@dataclass
class CoverageReport:
    files: dict = field(default_factory=dict)
    errors: list = field(default_factory=list)

    @property
    def total_lines(self) -> int:
        return sum(f.total for f in self.files.values())

    @property
    def total_hit(self) -> int:
        return sum(f.hit for f in self.files.values())


def _source_for_artifact(dirpath: Path, name: str) -> Optional[Path]:
    stem = name[:-len(COV_SUFFIX)]
    candidates = []
    m = _PID_SUFFIX_RE.match(stem)
    if m:
        candidates.append(m.group("source"))
    candidates.append(stem)
    for candidate in candidates:
        source = dirpath / candidate
        if source.is_file():
            return source
    return None


def find_cov_files(path) -> Iterator[Tuple[Path, Path]]:
    """Yield (artifact, source) pairs for every .cov file below path.

    Directories and files are visited in sorted order. Artifacts whose source
    file no longer exists are skipped.
    """
    for dirpath, dirnames, filenames in os.walk(path):
        dirnames.sort()
        for name in sorted(filenames):
            if not name.endswith(COV_SUFFIX) or name == COV_SUFFIX:
                continue
            source = _source_for_artifact(Path(dirpath), name)
            artifact = Path(dirpath) / name
            if source is None:
                logger.debug("Skipping %s: no matching source file", artifact)
                continue
            yield artifact, source


def parse_cov_line(line: str) -> int:
    """Return the hit count of one artifact line, NOT_TRACKED for '-'.

    Raises ValueError if the count field is missing or not a number.
    """
    if not line.strip():
        # Julia never writes these, but an editor may leave a trailing one
        return NOT_TRACKED
    m = _COV_LINE_RE.match(line)
    if not m:
        raise ValueError(line)
    count = m.group(1)
    if count == "-":
        return NOT_TRACKED
    return int(count)


def parse_cov_file(cov_path) -> List[LineRecord]:
    """Parse a .cov artifact into one LineRecord per line, in file order."""
    records = []
    with open(cov_path, encoding="utf-8", errors="replace") as f:
        for line_no, line in enumerate(f, 1):
            line = line.rstrip("\r\n")
            try:
                hit_count = parse_cov_line(line)
            except ValueError:
                raise CoverageParseError(cov_path, line_no, line[:COUNT_FIELD_WIDTH + 20]) from None
            records.append(LineRecord(line_no=line_no, hit_count=hit_count))
    return records


def merge_line_records(*runs) -> List[LineRecord]:
    """Merge several runs of one file line by line.

    A line is hit if any run hit it and missed only if some run tracked it
    and no run hit it. Hit counts are summed over the runs that tracked the
    line. Shorter runs count as not tracking their missing tail.
    """
    length = max((len(run) for run in runs), default=0)
    merged = []
    for idx in range(length):
        counts = [run[idx].hit_count for run in runs if idx < len(run) and run[idx].tracked]
        hit_count = sum(counts) if counts else NOT_TRACKED
        merged.append(LineRecord(line_no=idx + 1, hit_count=hit_count))
    return merged


def count_source_lines(source_path) -> int:
    with open(source_path, encoding="utf-8", errors="replace") as f:
        return sum(1 for _ in f)


def relative_key(source_path, root=None) -> str:
    """Normalized report key for a source file: posix path relative to root."""
    root = Path(root if root is not None else os.getcwd()).resolve()
    source = Path(source_path).resolve()
    try:
        return source.relative_to(root).as_posix()
    except ValueError:
        return source.as_posix()


def aggregate_file(filename: str, runs, source_lines: Optional[int] = None) -> FileCoverage:
    """Build the FileCoverage of one file from its parsed runs."""
    lines = merge_line_records(*runs)
    if source_lines is not None and len(lines) > source_lines:
        logger.warning(
            "Coverage data for %s has %d lines but the source has %d; ignoring the extra lines",
            filename, len(lines), source_lines,
        )
        lines = lines[:source_lines]
    return FileCoverage(filename=filename, lines=lines)


def collect_coverage(path, root=None) -> CoverageReport:
    """Collect all .cov artifacts below path into a single report.

    Report keys are relative to root (default: the current directory) and
    appear in the order the files were discovered. An artifact that fails to
    parse or cannot be read is logged and recorded in ``report.errors``; the
    remaining files are still aggregated.
    """
    report = CoverageReport()

    artifacts_by_source = {}
    for cov_path, source in find_cov_files(path):
        artifacts_by_source.setdefault(source, []).append(cov_path)

    for source, cov_paths in artifacts_by_source.items():
        runs = []
        for cov_path in cov_paths:
            try:
                runs.append(parse_cov_file(cov_path))
            except CoverageParseError as e:
                logger.warning("Skipping malformed coverage file: %s", e)
                report.errors.append(e)
            except OSError as e:
                logger.warning("Skipping unreadable coverage file %s: %s", cov_path, e)
                report.errors.append(e)
        if not runs:
            continue
        try:
            source_lines = count_source_lines(source)
        except OSError as e:
            logger.warning("Skipping %s: cannot read source: %s", source, e)
            report.errors.append(e)
            continue
        key = relative_key(source, root)
        report.files[key] = aggregate_file(key, runs, source_lines)

    return report
