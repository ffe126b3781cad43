#!/usr/bin/env python3
"""
Julia command line flags forwarded to the test subprocess.

Flags left unset in a RunConfig inherit the setting of the current run,
taken from a RuntimeSnapshot captured once when the run starts. The runner
exports every resolved flag as JLTEST_<FLAG> into the subprocess
environment, so a run started from inside a test suite inherits the outer
run's settings.
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Dict, Optional

from coverage_common import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "JLTEST_"

YES_NO = ("yes", "no")

# Order here is the order on the command line
FLAG_CHOICES = {
    "color": ("yes", "no", "auto"),
    "compiled_modules": YES_NO,
    "startup_file": YES_NO,
    "depwarn": ("yes", "no", "error"),
    "inline": YES_NO,
    "check_bounds": ("yes", "no", "auto"),
    "track_allocation": ("none", "user", "all"),
    "threads": None,
}

RUNTIME_FLAGS = tuple(FLAG_CHOICES)


def option_name(flag: str) -> str:
    return "--" + flag.replace("_", "-")


def env_name(flag: str) -> str:
    return ENV_PREFIX + flag.upper()


def normalize_threads(value) -> str:
    text = str(value).strip().lower()
    if text == "auto":
        return text
    # "4,1" is <default pool>,<interactive pool>; the interactive pool may be "auto"
    parts = text.split(",")
    default_pool = parts[0]
    valid = 1 <= len(parts) <= 2 and default_pool.isdigit() and int(default_pool) >= 1
    if valid and len(parts) == 2:
        valid = parts[1] == "auto" or parts[1].isdigit()
    if valid:
        return text
    raise ConfigurationError(
        f"invalid value {value!r} for --threads (auto, N, N,M or N,auto)"
    )


def normalize_flag(flag: str, value) -> str:
    """Return the command line spelling of value, raising ConfigurationError if invalid."""
    if flag not in FLAG_CHOICES:
        raise ConfigurationError(f"unknown runtime flag {flag!r}")
    if flag == "threads":
        return normalize_threads(value)
    if isinstance(value, bool):
        value = "yes" if value else "no"
    text = str(value).strip().lower()
    choices = FLAG_CHOICES[flag]
    if text not in choices:
        raise ConfigurationError(
            f"invalid value {value!r} for {option_name(flag)} (choose from: {', '.join(choices)})"
        )
    return text


def _color_from_environment(environ, stream) -> Optional[str]:
    if environ.get("NO_COLOR"):
        return "no"
    if environ.get("FORCE_COLOR"):
        return "yes"
    isatty = getattr(stream, "isatty", None)
    if isatty is not None and isatty():
        return "yes"
    return None


@dataclass(frozen=True)
class RuntimeSnapshot:
    """Runtime flag values of the current run, keyed by flag name."""

    settings: Dict[str, str] = field(default_factory=dict)

    def get(self, flag: str) -> Optional[str]:
        return self.settings.get(flag)

    @classmethod
    def capture(cls, environ=None, stream=None) -> "RuntimeSnapshot":
        """Snapshot the inheritable settings of this process.

        Settings that cannot be observed are left out; the subprocess then
        uses Julia's own default for them.
        """
        if environ is None:
            environ = os.environ
        if stream is None:
            stream = sys.stdout

        settings = {}
        for flag in RUNTIME_FLAGS:
            value = environ.get(env_name(flag))
            if value:
                settings[flag] = normalize_flag(flag, value)

        if "threads" not in settings and environ.get("JULIA_NUM_THREADS"):
            settings["threads"] = normalize_flag("threads", environ["JULIA_NUM_THREADS"])
        if "color" not in settings:
            color = _color_from_environment(environ, stream)
            if color is not None:
                settings["color"] = color

        logger.debug("Captured runtime settings: %s", settings)
        return cls(settings=settings)

    def to_environ(self) -> Dict[str, str]:
        return {env_name(flag): value for flag, value in self.settings.items()}
