"""Unit tests for process and environment helpers."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from buildhelpers.utils.shell import CommandError, cwd, env_or, output, run, run_cmds


def _py(code: str) -> list[str]:
    return [sys.executable, "-c", code]


def test_env_or_treats_empty_as_unset() -> None:
    environ = {"GOOS": "linux", "GOARCH": ""}

    assert env_or("GOOS", "darwin", environ) == "linux"
    assert env_or("GOARCH", "amd64", environ) == "amd64"
    assert env_or("MISSING", "x", environ) == "x"


def test_cwd_matches_process_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    assert cwd() == Path.cwd()


def test_output_returns_stripped_stdout(tmp_path: Path) -> None:
    assert output(_py("print('  hello  ')")) == "hello"
    assert output(_py("import os; print(os.getcwd())"), cwd=tmp_path) == str(tmp_path.resolve())
    assert output(_py("import os; print(os.environ['BH_X'])"), env={"BH_X": "42"}) == "42"


def test_output_failure_carries_stderr() -> None:
    with pytest.raises(CommandError) as excinfo:
        output(_py("import sys; sys.stderr.write('bad flag'); sys.exit(4)"))

    assert excinfo.value.returncode == 4
    assert "exited with 4: bad flag" in str(excinfo.value)


def test_run_missing_binary_reports_start_failure() -> None:
    with pytest.raises(CommandError, match="could not be started") as excinfo:
        run(["buildhelpers-definitely-missing-binary"])

    assert excinfo.value.returncode is None


def test_run_cmds_stops_at_first_failure(tmp_path: Path) -> None:
    marker = tmp_path / "marker"

    with pytest.raises(CommandError, match="exited with 2"):
        run_cmds(
            _py("import sys; sys.exit(2)"),
            _py(f"open({str(marker)!r}, 'w').close()"),
        )

    assert not marker.exists()


@pytest.mark.parametrize("argv", ["echo hi", []])
def test_run_rejects_bad_argv(argv: object) -> None:
    with pytest.raises(ValueError):
        run(argv)  # type: ignore[arg-type]
