"""Process and environment helpers for build scripts."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

logger = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """Raised when a command exits non-zero or cannot be started."""

    def __init__(self, argv: Sequence[str], returncode: int | None, detail: str = "") -> None:
        self.argv = tuple(argv)
        self.returncode = returncode
        self.detail = detail
        status = "could not be started" if returncode is None else f"exited with {returncode}"
        message = f"command {shlex.join(self.argv)!r} {status}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


def env_or(name: str, default: str, environ: Mapping[str, str] | None = None) -> str:
    """Return the environment value of ``name`` unless it is unset or empty."""

    env = os.environ if environ is None else environ
    value = env.get(name, "")
    return value if value else default


def cwd() -> Path:
    return Path.cwd()


def run(
    argv: Sequence[str],
    *,
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> None:
    """Run ``argv`` with inherited stdio; raise :class:`CommandError` on failure."""

    _require_argv(argv)
    logger.info("exec: %s", shlex.join(argv))
    try:
        completed = subprocess.run(list(argv), cwd=cwd, env=_merged_env(env), check=False)
    except OSError as exc:
        raise CommandError(argv, None, str(exc)) from exc
    if completed.returncode != 0:
        raise CommandError(argv, completed.returncode)


def output(
    argv: Sequence[str],
    *,
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> str:
    """Run ``argv`` and return its stripped stdout."""

    _require_argv(argv)
    try:
        completed = subprocess.run(
            list(argv),
            cwd=cwd,
            env=_merged_env(env),
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise CommandError(argv, None, str(exc)) from exc
    if completed.returncode != 0:
        raise CommandError(argv, completed.returncode, completed.stderr.strip())
    return completed.stdout.strip()


def run_cmds(*commands: Sequence[str]) -> None:
    """Run ``commands`` in order, stopping at the first failure."""

    for argv in commands:
        run(argv)


def _require_argv(argv: Sequence[str]) -> None:
    if isinstance(argv, str) or not argv:
        raise ValueError("argv must be a non-empty sequence of strings")


def _merged_env(extra: Mapping[str, str] | None) -> dict[str, str] | None:
    if not extra:
        return None
    merged = dict(os.environ)
    merged.update(extra)
    return merged


__all__ = ["CommandError", "cwd", "env_or", "output", "run", "run_cmds"]
