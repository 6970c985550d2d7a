"""Load ``buildhelpers.toml`` and environment overrides into a validated config.

Layers are applied in order, each winning over the one before:

1. built-in defaults,
2. the TOML file (optional unless a path is given explicitly),
3. the legacy ``MAX_PARALLEL`` variable, ignored when it is not a positive integer,
4. ``BUILDHELPERS_<SECTION>_<KEY>`` variables, coerced to the type of the key.

Command line flags (``--max-parallel``, ``--log-dir``, ``--verbose``) are applied
by the CLI on top of the loaded config. Path fields are resolved relative to
the directory holding the config file.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Final

from buildhelpers.config.schema import (
    PATH_FIELDS,
    assert_valid_config,
    default_config,
    merge_config,
)
from buildhelpers.constants import DEFAULT_CONFIG_FILE, ENV_PREFIX, MAX_PARALLEL_ENV
from buildhelpers.parallel.capacity import parse_max_parallel

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})


class ConfigLoadError(ValueError):
    """Raised when the config file is unreadable or an env override has the wrong type."""


def load_config(
    config_path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the effective config for one CLI invocation."""
    path = _config_file(config_path)
    env = os.environ if environ is None else environ

    config = assert_valid_config(
        merge_config(default_config(), _read_toml(path, required=config_path is not None))
    )
    config = merge_config(config, _legacy_env_layer(env))
    config = merge_config(config, _prefixed_env_layer(config, env))
    config = assert_valid_config(config)

    for section, key in PATH_FIELDS:
        value = config[section][key]
        if isinstance(value, str):
            config[section][key] = _resolve_path(value, path.parent)
    return config


def _config_file(config_path: str | Path | None) -> Path:
    if config_path is None:
        return (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
    return Path(config_path).expanduser().resolve()


def _read_toml(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _legacy_env_layer(env: Mapping[str, str]) -> dict[str, Any]:
    cap = parse_max_parallel(env.get(MAX_PARALLEL_ENV))
    return {} if cap is None else {"parallel": {"max_parallel": cap}}


def _prefixed_env_layer(config: Mapping[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for section, values in config.items():
        if not isinstance(values, Mapping):
            continue
        for key, current in values.items():
            name = f"{ENV_PREFIX}{section.upper()}_{key.upper()}"
            raw = env.get(name)
            if raw is None or type(current) not in _PARSERS:
                continue
            layer.setdefault(section, {})[key] = _coerce(raw, type(current), name)
    return layer


def _parse_bool(text: str) -> bool:
    lowered = text.lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError(text)


_PARSERS: Final[dict[type, tuple[Callable[[str], object], str]]] = {
    bool: (_parse_bool, "a boolean (true/false/1/0/yes/no/on/off)"),
    int: (int, "an integer"),
    float: (float, "a number"),
    str: (str, "a string"),
}


def _coerce(raw: str, target: type, name: str) -> object:
    parse, expected = _PARSERS[target]
    try:
        return parse(raw.strip())
    except ValueError as exc:
        raise ConfigLoadError(f"{name}={raw!r} must be {expected}") from exc


def _resolve_path(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


__all__ = ["ConfigLoadError", "load_config"]
