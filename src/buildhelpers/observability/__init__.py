"""Per-run JSON-lines logging for build runs."""

from buildhelpers.observability.logging import (
    LoggingConfig,
    RunLog,
    correlation_scope,
    setup_logging,
    shutdown_logging,
    start_run_log,
)

__all__ = [
    "LoggingConfig",
    "RunLog",
    "correlation_scope",
    "setup_logging",
    "shutdown_logging",
    "start_run_log",
]
