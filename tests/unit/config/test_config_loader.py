"""
build-helpers: unit tests for config loading and validation

Purpose
- Validate deterministic config loading from defaults, TOML, and env overrides.

What this test file should cover
- Precedence: env > file > defaults.
- Legacy ``MAX_PARALLEL`` leniency versus strict prefixed env coercion.
- Path normalization relative to the config file.
- Every validation issue reported at once.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from buildhelpers.config import (
    ConfigLoadError,
    ConfigValidationError,
    assert_valid_config,
    default_config,
    load_config,
)


def _write_config(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_when_no_file_present(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    loaded = load_config(environ={})

    assert loaded["parallel"] == {
        "max_parallel": 0,
        "use_docker_hint": True,
        "docker_binary": "docker",
    }
    assert loaded["download"]["timeout_seconds"] == 60.0
    assert loaded["observability"]["log_dir"] == (tmp_path.resolve() / "logs").as_posix()


def test_loader_precedence_default_file_env(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "buildhelpers.toml",
        """
[parallel]
max_parallel = 4

[download]
timeout_seconds = 30
""".strip(),
    )

    file_loaded = load_config(config_path, environ={})
    env_loaded = load_config(config_path, environ={"BUILDHELPERS_PARALLEL_MAX_PARALLEL": "6"})

    assert file_loaded["parallel"]["max_parallel"] == 4
    assert file_loaded["download"]["timeout_seconds"] == 30.0
    assert file_loaded["parallel"]["docker_binary"] == "docker"
    assert env_loaded["parallel"]["max_parallel"] == 6
    assert env_loaded["download"]["timeout_seconds"] == 30.0


def test_legacy_max_parallel_is_lenient(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "buildhelpers.toml", "")

    assert load_config(config_path, environ={"MAX_PARALLEL": "3"})["parallel"]["max_parallel"] == 3
    for raw in ("zero", "0", "-5", ""):
        loaded = load_config(config_path, environ={"MAX_PARALLEL": raw})
        assert loaded["parallel"]["max_parallel"] == 0


def test_prefixed_env_beats_legacy_variable(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "buildhelpers.toml", "")

    loaded = load_config(
        config_path,
        environ={"MAX_PARALLEL": "3", "BUILDHELPERS_PARALLEL_MAX_PARALLEL": "5"},
    )

    assert loaded["parallel"]["max_parallel"] == 5


def test_env_coercion_for_bool_and_float(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "buildhelpers.toml", "")

    loaded = load_config(
        config_path,
        environ={
            "BUILDHELPERS_PARALLEL_USE_DOCKER_HINT": "off",
            "BUILDHELPERS_DOWNLOAD_TIMEOUT_SECONDS": "2.5",
            "BUILDHELPERS_OBSERVABILITY_LOG_LEVEL": "debug",
        },
    )

    assert loaded["parallel"]["use_docker_hint"] is False
    assert loaded["download"]["timeout_seconds"] == 2.5
    assert loaded["observability"]["log_level"] == "DEBUG"


def test_invalid_env_coercion_raises_actionable_error(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "buildhelpers.toml", "")

    with pytest.raises(ConfigLoadError, match="MAX_PARALLEL='many' must be an integer"):
        load_config(config_path, environ={"BUILDHELPERS_PARALLEL_MAX_PARALLEL": "many"})
    with pytest.raises(ConfigLoadError, match="must be a boolean"):
        load_config(config_path, environ={"BUILDHELPERS_PARALLEL_USE_DOCKER_HINT": "maybe"})


def test_missing_explicit_config_path_fails(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="config file not found"):
        load_config(tmp_path / "absent.toml", environ={})


def test_invalid_toml_fails(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "buildhelpers.toml", "[parallel\n")

    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(config_path, environ={})


def test_log_dir_is_relative_to_config_file(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "conf" / "buildhelpers.toml",
        """
[observability]
log_dir = "../build/logs"
""".strip(),
    )

    loaded = load_config(config_path, environ={})

    assert loaded["observability"]["log_dir"] == (tmp_path.resolve() / "build" / "logs").as_posix()


def test_validation_reports_every_issue(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "buildhelpers.toml",
        """
[parallel]
max_parallel = -1
surprise = true

[download]
timeout_seconds = 0

[observability]
log_level = "chatty"
""".strip(),
    )

    with pytest.raises(ConfigValidationError) as excinfo:
        load_config(config_path, environ={})

    paths = sorted(issue.path for issue in excinfo.value.issues)
    assert paths == [
        "download.timeout_seconds",
        "observability.log_level",
        "parallel.max_parallel",
        "parallel.surprise",
    ]


def test_unknown_section_and_bad_types() -> None:
    payload = default_config()
    payload["extra"] = {}  # type: ignore[typeddict-unknown-key]
    payload["parallel"]["use_docker_hint"] = "yes"  # type: ignore[typeddict-item]

    with pytest.raises(ConfigValidationError) as excinfo:
        assert_valid_config(payload)

    messages = {issue.path: issue.message for issue in excinfo.value.issues}
    assert messages["extra"] == "unknown field"
    assert messages["parallel.use_docker_hint"] == "expected boolean, got str"


def test_env_override_for_unknown_key_is_ignored(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "buildhelpers.toml", "")

    loaded = load_config(config_path, environ={"BUILDHELPERS_PARALLEL_SURPRISE": "1"})

    assert "surprise" not in loaded["parallel"]


def test_env_string_override_is_stripped(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "buildhelpers.toml", "")

    loaded = load_config(config_path, environ={"BUILDHELPERS_PARALLEL_DOCKER_BINARY": " podman "})

    assert loaded["parallel"]["docker_binary"] == "podman"
