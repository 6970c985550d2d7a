"""Stable constants shared across the build helpers."""

from __future__ import annotations

from typing import Final

# Legacy override for the parallel runner's concurrency cap.
MAX_PARALLEL_ENV: Final[str] = "MAX_PARALLEL"

CONFIG_SCHEMA_VERSION: Final[int] = 1
DEFAULT_CONFIG_FILE: Final[str] = "buildhelpers.toml"
ENV_PREFIX: Final[str] = "BUILDHELPERS_"

# Permission bits for generated files and directories.
DEFAULT_FILE_MODE: Final[int] = 0o644
DEFAULT_DIR_MODE: Final[int] = 0o755

SHA512_SIDECAR_SUFFIX: Final[str] = ".sha512"

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_DIR_MODE",
    "DEFAULT_FILE_MODE",
    "ENV_PREFIX",
    "MAX_PARALLEL_ENV",
    "SHA512_SIDECAR_SUFFIX",
]
