"""Tests for runtime flag validation and the inherited-settings snapshot."""

import io

import pytest

from coverage_common import ConfigurationError
from runtime_flags import RUNTIME_FLAGS, RuntimeSnapshot, env_name, normalize_flag, option_name


class FakeTTY(io.StringIO):
    def isatty(self):
        return True


def test_option_and_env_names():
    assert option_name("compiled_modules") == "--compiled-modules"
    assert env_name("check_bounds") == "JLTEST_CHECK_BOUNDS"


@pytest.mark.parametrize("flag,value,expected", [
    ("color", "AUTO", "auto"),
    ("inline", True, "yes"),
    ("startup_file", False, "no"),
    ("depwarn", "error", "error"),
    ("track_allocation", "user", "user"),
    ("threads", 4, "4"),
    ("threads", "auto", "auto"),
    ("threads", "4,1", "4,1"),
    ("threads", "4,auto", "4,auto"),
])
def test_normalize_flag(flag, value, expected):
    assert normalize_flag(flag, value) == expected


@pytest.mark.parametrize("flag,value", [
    ("depwarn", "loud"),
    ("inline", "maybe"),
    ("threads", 0),
    ("threads", "many"),
    ("threads", "auto,auto"),
    ("threads", "4,many"),
    ("threads", "4,1,1"),
    ("bogus", "yes"),
])
def test_normalize_flag_rejects(flag, value):
    with pytest.raises(ConfigurationError):
        normalize_flag(flag, value)


class TestCapture:

    def test_nothing_observable(self):
        snapshot = RuntimeSnapshot.capture(environ={}, stream=io.StringIO())
        assert snapshot.settings == {}

    def test_reads_exported_settings(self):
        environ = {"JLTEST_COMPILED_MODULES": "no", "JLTEST_DEPWARN": "error", "JLTEST_THREADS": "2"}

        snapshot = RuntimeSnapshot.capture(environ=environ, stream=io.StringIO())

        assert snapshot.get("compiled_modules") == "no"
        assert snapshot.get("depwarn") == "error"
        assert snapshot.get("threads") == "2"
        assert snapshot.get("inline") is None

    def test_julia_num_threads(self):
        snapshot = RuntimeSnapshot.capture(environ={"JULIA_NUM_THREADS": "8"}, stream=io.StringIO())
        assert snapshot.get("threads") == "8"

    def test_julia_num_threads_with_auto_interactive_pool(self):
        snapshot = RuntimeSnapshot.capture(environ={"JULIA_NUM_THREADS": "4,auto"}, stream=io.StringIO())
        assert snapshot.get("threads") == "4,auto"

    def test_exported_threads_win_over_julia_num_threads(self):
        environ = {"JULIA_NUM_THREADS": "8", "JLTEST_THREADS": "3"}
        snapshot = RuntimeSnapshot.capture(environ=environ, stream=io.StringIO())
        assert snapshot.get("threads") == "3"

    def test_color_from_terminal(self):
        assert RuntimeSnapshot.capture(environ={}, stream=FakeTTY()).get("color") == "yes"

    def test_no_color_wins_over_terminal(self):
        snapshot = RuntimeSnapshot.capture(environ={"NO_COLOR": "1"}, stream=FakeTTY())
        assert snapshot.get("color") == "no"

    def test_force_color(self):
        snapshot = RuntimeSnapshot.capture(environ={"FORCE_COLOR": "1"}, stream=io.StringIO())
        assert snapshot.get("color") == "yes"

    def test_invalid_exported_value(self):
        with pytest.raises(ConfigurationError):
            RuntimeSnapshot.capture(environ={"JLTEST_INLINE": "sometimes"}, stream=io.StringIO())


def test_to_environ_round_trips_through_capture():
    settings = {"inline": "no", "check_bounds": "auto", "threads": "4"}

    environ = RuntimeSnapshot(settings).to_environ()

    assert RuntimeSnapshot.capture(environ=environ, stream=io.StringIO()).settings == settings
    assert set(environ) <= {env_name(flag) for flag in RUNTIME_FLAGS}
