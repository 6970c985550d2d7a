"""
build-helpers: unit tests for concurrency cap resolution

Purpose
- Validate override precedence, the CPU-count default, and the capacity-hint bound.
"""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from buildhelpers.environment.docker import DockerInfo
from buildhelpers.parallel.capacity import (
    CapacitySource,
    RunnerConfig,
    create_limiter,
    docker_capacity_hint,
    max_parallel_from_env,
    parse_max_parallel,
    resolve_runner_config,
)


class _FakeProbe:
    def __init__(self, info: DockerInfo | None) -> None:
        self._info = info
        self.calls = 0

    def probe(self) -> DockerInfo | None:
        self.calls += 1
        return self._info


def _info(ncpu: int, operating_system: str = "Ubuntu 24.04") -> DockerInfo:
    return DockerInfo(operating_system=operating_system, labels=(), ncpu=ncpu, mem_total=0)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("4", 4),
        (" 12 ", 12),
        (3, 3),
        ("0", None),
        ("-2", None),
        ("abc", None),
        ("", None),
        (None, None),
        (True, None),
        (0, None),
    ],
)
def test_parse_max_parallel(raw: object, expected: int | None) -> None:
    assert parse_max_parallel(raw) == expected


def test_max_parallel_from_env_reads_legacy_variable() -> None:
    assert max_parallel_from_env({"MAX_PARALLEL": "6"}) == 6
    assert max_parallel_from_env({"MAX_PARALLEL": "lots"}) is None
    assert max_parallel_from_env({}) is None


def test_explicit_override_wins_over_smaller_hint() -> None:
    config = resolve_runner_config(override="16", cpu_count=4, capacity_hint=lambda: 2)

    assert config == RunnerConfig(16, CapacitySource.OVERRIDE)


def test_invalid_override_falls_back_to_cpu_count() -> None:
    config = resolve_runner_config(override="not-a-number", cpu_count=8)

    assert config == RunnerConfig(8, CapacitySource.CPU_COUNT)


def test_smaller_hint_bounds_cpu_count() -> None:
    config = resolve_runner_config(cpu_count=8, capacity_hint=lambda: 2)

    assert config == RunnerConfig(2, CapacitySource.CAPACITY_HINT)


def test_larger_or_missing_hint_keeps_cpu_count() -> None:
    assert resolve_runner_config(cpu_count=4, capacity_hint=lambda: 32).max_concurrency == 4
    assert resolve_runner_config(cpu_count=4, capacity_hint=lambda: None).max_concurrency == 4
    assert resolve_runner_config(cpu_count=4, capacity_hint=lambda: 0).max_concurrency == 4


def test_failing_hint_is_ignored() -> None:
    def broken() -> int | None:
        raise OSError("daemon went away")

    config = resolve_runner_config(cpu_count=3, capacity_hint=broken)

    assert config == RunnerConfig(3, CapacitySource.CPU_COUNT)


def test_default_uses_local_cpu_count() -> None:
    config = resolve_runner_config()

    assert config.source is CapacitySource.CPU_COUNT
    assert config.max_concurrency >= 1


@given(
    cpu=st.integers(min_value=1, max_value=256),
    hint=st.one_of(st.none(), st.integers(min_value=-4, max_value=256)),
)
@settings(max_examples=25, derandomize=True, deadline=None)
def test_property_resolved_cap_is_positive_and_bounded(cpu: int, hint: int | None) -> None:
    config = resolve_runner_config(cpu_count=cpu, capacity_hint=lambda: hint)

    assert 1 <= config.max_concurrency <= cpu
    if hint is not None and 0 < hint < cpu:
        assert config.max_concurrency == hint


def test_runner_config_rejects_non_positive_caps() -> None:
    with pytest.raises(ValueError):
        RunnerConfig(0, CapacitySource.OVERRIDE)
    with pytest.raises(ValueError):
        RunnerConfig(-1, CapacitySource.CPU_COUNT)


def test_docker_hint_reports_daemon_cpus_and_caches_probe() -> None:
    probe = _FakeProbe(_info(ncpu=2, operating_system="Boot2Docker 19.03"))
    hint = docker_capacity_hint(probe)  # type: ignore[arg-type]

    assert hint() == 2
    assert resolve_runner_config(cpu_count=8, capacity_hint=hint).max_concurrency == 2


def test_docker_hint_without_daemon_is_none() -> None:
    hint = docker_capacity_hint(_FakeProbe(None))  # type: ignore[arg-type]

    assert hint() is None
    assert resolve_runner_config(cpu_count=5, capacity_hint=hint).max_concurrency == 5


def test_create_limiter_builds_semaphore_with_cap() -> None:
    limiter = create_limiter(RunnerConfig(3, CapacitySource.OVERRIDE))

    assert limiter.limit == 3
    assert limiter.in_use == 0
