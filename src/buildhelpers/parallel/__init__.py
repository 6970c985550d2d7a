"""Bounded-parallel task execution."""

from buildhelpers.parallel.capacity import (
    CapacitySource,
    RunnerConfig,
    create_limiter,
    docker_capacity_hint,
    max_parallel_from_env,
    resolve_runner_config,
)
from buildhelpers.parallel.runner import (
    ExecutionReport,
    ParallelError,
    ParallelRunner,
    Task,
    as_task,
    run_in_parallel,
)

__all__ = [
    "CapacitySource",
    "ExecutionReport",
    "ParallelError",
    "ParallelRunner",
    "RunnerConfig",
    "Task",
    "as_task",
    "create_limiter",
    "docker_capacity_hint",
    "max_parallel_from_env",
    "resolve_runner_config",
    "run_in_parallel",
]
