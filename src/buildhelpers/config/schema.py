"""
build-helpers: configuration schema and validation.

Purpose
- Define configuration defaults and strict validation rules.

Functional requirements
- Validate config payloads and report every issue (field path + message) at once.
- Reject unknown sections and keys.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, TypedDict

from buildhelpers.constants import CONFIG_SCHEMA_VERSION

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

_LOG_LEVELS: Final[tuple[str, ...]] = ("CRITICAL", "DEBUG", "ERROR", "INFO", "WARNING")

# Config paths normalized relative to the config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (("observability", "log_dir"),)


class MetaConfig(TypedDict):
    schema_version: int


class ParallelConfig(TypedDict):
    max_parallel: int
    use_docker_hint: bool
    docker_binary: str


class DownloadConfig(TypedDict):
    timeout_seconds: float


class ObservabilityConfig(TypedDict):
    log_level: str
    log_dir: str
    log_to_stderr: bool


class BuildHelpersConfig(TypedDict):
    meta: MetaConfig
    parallel: ParallelConfig
    download: DownloadConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[BuildHelpersConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "parallel": {
        # 0 selects the automatic cap (CPU count, bounded by the docker hint).
        "max_parallel": 0,
        "use_docker_hint": True,
        "docker_binary": "docker",
    },
    "download": {
        "timeout_seconds": 60.0,
    },
    "observability": {
        "log_level": "INFO",
        "log_dir": "logs",
        "log_to_stderr": False,
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


class ConfigValidationError(ValueError):
    """Raised when config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> BuildHelpersConfig:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto a copy of ``base``."""

    merged = copy.deepcopy(dict(base))
    _merge_into(merged, overlay)
    return merged


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate ``config`` and return a normalized copy, raising on any issue."""

    issues = _IssueCollector()
    if not isinstance(config, Mapping):
        issues.add("<root>", f"expected object, got {type(config).__name__}")
        raise ConfigValidationError(issues.items())

    _reject_unknown_keys(config, set(DEFAULT_CONFIG), "", issues)
    normalized: dict[str, Any] = {}

    meta = _section(config, "meta", issues)
    version = _as_int(meta.get("schema_version"), "meta.schema_version", issues, minimum=1)
    if version is not None and version != ConfigSchemaVersion:
        issues.add(
            "meta.schema_version",
            f"unsupported schema version {version}; expected {ConfigSchemaVersion}",
        )
    normalized["meta"] = {"schema_version": version}

    parallel = _section(config, "parallel", issues)
    normalized["parallel"] = {
        "max_parallel": _as_int(
            parallel.get("max_parallel"), "parallel.max_parallel", issues, minimum=0
        ),
        "use_docker_hint": _as_bool(
            parallel.get("use_docker_hint"), "parallel.use_docker_hint", issues
        ),
        "docker_binary": _as_str(parallel.get("docker_binary"), "parallel.docker_binary", issues),
    }

    download = _section(config, "download", issues)
    timeout = _as_float(download.get("timeout_seconds"), "download.timeout_seconds", issues)
    if timeout is not None and timeout <= 0:
        issues.add("download.timeout_seconds", "must be > 0")
    normalized["download"] = {"timeout_seconds": timeout}

    observability = _section(config, "observability", issues)
    level = _as_str(observability.get("log_level"), "observability.log_level", issues)
    if level is not None:
        level = level.upper()
        if level not in _LOG_LEVELS:
            expected = ", ".join(_LOG_LEVELS)
            issues.add(
                "observability.log_level", f"invalid value {level!r}; expected one of: {expected}"
            )
    normalized["observability"] = {
        "log_level": level,
        "log_dir": _as_str(observability.get("log_dir"), "observability.log_dir", issues),
        "log_to_stderr": _as_bool(
            observability.get("log_to_stderr"), "observability.log_to_stderr", issues
        ),
    }

    if issues.has_issues:
        raise ConfigValidationError(issues.items())
    return normalized


def _section(
    payload: Mapping[str, object], name: str, issues: _IssueCollector
) -> Mapping[str, object]:
    value = payload.get(name)
    if not isinstance(value, Mapping):
        issues.add(name, f"expected object, got {type(value).__name__}")
        return {}
    defaults = DEFAULT_CONFIG[name]  # type: ignore[literal-required]
    _reject_unknown_keys(value, set(defaults), name, issues)
    return value


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(value: object, path: str, issues: _IssueCollector) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(f"{path}.{key}" if path else key, "unknown field")


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if not isinstance(existing, dict):
                existing = {}
                target[key] = existing
            _merge_into(existing, value)
        else:
            target[key] = copy.deepcopy(value)


__all__ = [
    "DEFAULT_CONFIG",
    "PATH_FIELDS",
    "BuildHelpersConfig",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "assert_valid_config",
    "default_config",
    "merge_config",
]
