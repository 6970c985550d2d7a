"""
build-helpers config package public API.

Loads ``buildhelpers.toml`` plus ``BUILDHELPERS_`` env overrides (and the legacy
``MAX_PARALLEL`` variable) into a validated plain-dict config.
"""

from buildhelpers.config.loader import ConfigLoadError, load_config
from buildhelpers.config.schema import (
    DEFAULT_CONFIG,
    PATH_FIELDS,
    BuildHelpersConfig,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    assert_valid_config,
    default_config,
    merge_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "PATH_FIELDS",
    "BuildHelpersConfig",
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "assert_valid_config",
    "default_config",
    "load_config",
    "merge_config",
]
