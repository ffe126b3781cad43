"""Shared fixtures: Julia-style source trees, .cov artifacts and fake executables."""

import stat
import sys
from pathlib import Path

import pytest

from runtime_flags import RuntimeSnapshot


def cov_line(count, source: str = "x") -> str:
    """One artifact line: 9-character count field, a space, the source text."""
    field = "-" if count is None else str(count)
    return f"{field:>9} {source}\n"


def write_cov(path: Path, counts) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(cov_line(c, f"line {i}") for i, c in enumerate(counts, 1)))
    return path


def write_source(path: Path, n_lines: int) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(f"line {i}\n" for i in range(1, n_lines + 1)))
    return path


def write_executable(path: Path, body: str) -> Path:
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


requires_posix = pytest.mark.skipif(sys.platform == "win32", reason="uses /bin/sh scripts")


@pytest.fixture
def empty_snapshot() -> RuntimeSnapshot:
    return RuntimeSnapshot()


@pytest.fixture
def package_root(tmp_path: Path) -> Path:
    """A package with an instantiated test environment and two source files.

    src/Full.jl has three tracked lines, src/Half.jl has two tracked lines
    (plus one untracked). Coverage artifacts for them are kept under
    fixtures/ so a fake julia can copy them into place.
    """
    root = tmp_path / "Pkg"
    (root / "test").mkdir(parents=True)
    (root / "test" / "Project.toml").write_text('[deps]\nTest = "8dfed614-e22c-5e08-85e1-65c5234f0b40"\n')
    (root / "test" / "Manifest.toml").write_text('julia_version = "1.10.0"\n')
    (root / "test" / "runtests.jl").write_text("using Test\n")
    write_source(root / "src" / "Full.jl", 3)
    write_source(root / "src" / "Half.jl", 3)

    fixtures = tmp_path / "fixtures"
    write_cov(fixtures / "Full.jl.4242.cov", [1, 2, 5])
    write_cov(fixtures / "Half.jl.4242.cov", [None, 3, 0])
    return root


@pytest.fixture
def fake_julia(tmp_path: Path):
    """Build a stand-in julia that records its arguments, drops artifacts and exits."""

    def make(exit_code: int = 0, write_coverage: bool = True) -> Path:
        body = f'printf "%s\\n" "$@" > "{tmp_path}/julia-args.txt"\n'
        body += f'env > "{tmp_path}/julia-env.txt"\n'
        if write_coverage:
            body += f'cp "{tmp_path}"/fixtures/*.cov src/\n'
        body += f"exit {exit_code}\n"
        return write_executable(tmp_path / "julia", body)

    return make
