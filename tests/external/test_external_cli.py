from __future__ import annotations

from pathlib import Path
import subprocess
import sys


def _tool_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _run(args: list[str]) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, "clinfo.py", *args],
        cwd=_tool_root(),
        capture_output=True,
        text=True,
        check=False,
    )


def test_t_01_help_prints_usage_on_stderr_and_exits_one() -> None:
    result = _run(["--help"])

    assert result.returncode == 1
    assert result.stdout == ""
    assert "Usage: clinfo.py [options]" in result.stderr
    assert "--image-formats" in result.stderr


def test_t_02_short_help_matches_long_help() -> None:
    assert _run(["-h"]).stderr == _run(["--help"]).stderr


def test_t_03_unknown_flag_is_treated_as_help_request() -> None:
    result = _run(["--not-a-flag"])

    assert result.returncode == 1
    assert result.stdout == ""
    assert "UNKNOWN_ARGUMENT" in result.stderr
    assert "Usage:" in result.stderr


def test_t_04_positional_argument_is_rejected() -> None:
    result = _run(["gpu"])

    assert result.returncode == 1
    assert "Usage:" in result.stderr


def test_t_05_report_against_installed_runtime_degrades_without_traceback() -> None:
    result = _run([])

    assert result.returncode in (0, 1)
    assert "Traceback (most recent call last)" not in result.stderr
    if result.returncode == 0:
        assert result.stdout.startswith("Found ")
    else:
        assert "Unable to" in result.stderr
