"""Resolution of the parallel runner's concurrency cap.

Precedence:
1. an explicit positive override (``MAX_PARALLEL`` or ``parallel.max_parallel``),
2. ``min(local CPU count, capacity hint)`` when a hint is available,
3. the local CPU count.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Final

from buildhelpers.constants import MAX_PARALLEL_ENV
from buildhelpers.environment.docker import DockerInfoProbe
from buildhelpers.utils.concurrency import BoundedSemaphore

logger = logging.getLogger(__name__)

CapacityHint = Callable[[], int | None]

_MIN_CPU_COUNT: Final[int] = 1


class CapacitySource(str, Enum):
    """Where the resolved concurrency cap came from."""

    OVERRIDE = "override"
    CPU_COUNT = "cpu_count"
    CAPACITY_HINT = "capacity_hint"


@dataclass(frozen=True, slots=True)
class RunnerConfig:
    """Concurrency cap for one process plus its provenance."""

    max_concurrency: int
    source: CapacitySource

    def __post_init__(self) -> None:
        if isinstance(self.max_concurrency, bool) or self.max_concurrency <= 0:
            raise ValueError("max_concurrency must be a positive integer")


def parse_max_parallel(raw: object) -> int | None:
    """Return a positive override from ``raw`` or ``None`` when unset or invalid."""

    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw > 0 else None
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        try:
            value = int(text)
        except ValueError:
            logger.debug("ignoring non-integer %s=%r", MAX_PARALLEL_ENV, raw)
            return None
        return value if value > 0 else None
    return None


def max_parallel_from_env(environ: Mapping[str, str] | None = None) -> int | None:
    env = os.environ if environ is None else environ
    return parse_max_parallel(env.get(MAX_PARALLEL_ENV))


def local_cpu_count() -> int:
    count = os.cpu_count()
    if count is None or count < _MIN_CPU_COUNT:
        return _MIN_CPU_COUNT
    return count


def docker_capacity_hint(probe: DockerInfoProbe) -> CapacityHint:
    """Build a capacity hint reporting the docker daemon's CPU count."""

    def hint() -> int | None:
        info = probe.probe()
        if info is None:
            return None
        if info.is_boot2docker:
            logger.debug("docker daemon runs in boot2docker (ncpu=%d)", info.ncpu)
        return info.ncpu if info.ncpu > 0 else None

    return hint


def resolve_runner_config(
    *,
    override: object = None,
    cpu_count: int | None = None,
    capacity_hint: CapacityHint | None = None,
) -> RunnerConfig:
    """Compute the concurrency cap; an explicit positive override always wins."""

    explicit = parse_max_parallel(override)
    if explicit is not None:
        return RunnerConfig(explicit, CapacitySource.OVERRIDE)

    local = cpu_count if cpu_count is not None and cpu_count > 0 else local_cpu_count()
    if capacity_hint is not None:
        hinted = _safe_hint(capacity_hint)
        if hinted is not None and hinted < local:
            return RunnerConfig(hinted, CapacitySource.CAPACITY_HINT)
    return RunnerConfig(local, CapacitySource.CPU_COUNT)


def create_limiter(config: RunnerConfig) -> BoundedSemaphore:
    """Build the process-wide limiter for ``config``; call once at start-up."""

    logger.info(
        "max parallel jobs = %d",
        config.max_concurrency,
        extra={"max_parallel": config.max_concurrency, "source": config.source.value},
    )
    return BoundedSemaphore(config.max_concurrency)


def _safe_hint(capacity_hint: CapacityHint) -> int | None:
    try:
        value = capacity_hint()
    except Exception as exc:  # noqa: BLE001 - hint failures are non-fatal.
        logger.debug("capacity hint failed: %s", exc)
        return None
    if value is None or isinstance(value, bool) or value <= 0:
        return None
    return int(value)


__all__ = [
    "CapacityHint",
    "CapacitySource",
    "RunnerConfig",
    "create_limiter",
    "docker_capacity_hint",
    "local_cpu_count",
    "max_parallel_from_env",
    "parse_max_parallel",
    "resolve_runner_config",
]
