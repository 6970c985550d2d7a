"""Unit tests for the docker daemon probe."""

from __future__ import annotations

import json
import subprocess
from typing import Any

import pytest

from buildhelpers.environment import docker
from buildhelpers.environment.docker import (
    DockerInfo,
    DockerInfoProbe,
    DockerUnavailableError,
    have_docker,
)

_INFO_PAYLOAD = json.dumps(
    {
        "OperatingSystem": "Boot2Docker 19.03.12",
        "Labels": ["provider=virtualbox"],
        "NCPU": 2,
        "MemTotal": 2_000_000_000,
    }
)


class _FakeRun:
    def __init__(self, *, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.calls: list[list[str]] = []
        self._result = (returncode, stdout, stderr)

    def __call__(self, argv: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.calls.append(argv)
        returncode, stdout, stderr = self._result
        return subprocess.CompletedProcess(argv, returncode, stdout=stdout, stderr=stderr)


def test_docker_info_from_json() -> None:
    info = DockerInfo.from_json(_INFO_PAYLOAD)

    assert info.ncpu == 2
    assert info.mem_total == 2_000_000_000
    assert info.labels == ("provider=virtualbox",)
    assert info.is_boot2docker


def test_docker_info_tolerates_missing_fields() -> None:
    info = DockerInfo.from_json('{"NCPU": "4", "Labels": null}')

    assert info.ncpu == 4
    assert info.labels == ()
    assert not info.is_boot2docker


@pytest.mark.parametrize("payload", ["not json", "[1, 2]"])
def test_docker_info_rejects_bad_payloads(payload: str) -> None:
    with pytest.raises(DockerUnavailableError):
        DockerInfo.from_json(payload)


def test_probe_runs_docker_info_once(monkeypatch: pytest.MonkeyPatch) -> None:
    fake_run = _FakeRun(stdout=_INFO_PAYLOAD)
    monkeypatch.setattr(docker.shutil, "which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(docker.subprocess, "run", fake_run)
    probe = DockerInfoProbe()

    first = probe.probe()
    second = probe.probe()

    assert first is second
    assert first is not None and first.ncpu == 2
    assert fake_run.calls == [["/usr/bin/docker", "info", "-f", "{{ json .}}"]]


def test_probe_without_binary_returns_none(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(docker.shutil, "which", lambda name: None)
    probe = DockerInfoProbe("docker-missing")

    assert probe.probe() is None
    with pytest.raises(DockerUnavailableError, match="not found on PATH"):
        probe.require()
    with pytest.raises(DockerUnavailableError):
        have_docker(probe)


def test_probe_failure_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    fake_run = _FakeRun(returncode=1, stderr="Cannot connect to the Docker daemon")
    monkeypatch.setattr(docker.shutil, "which", lambda name: "/usr/bin/docker")
    monkeypatch.setattr(docker.subprocess, "run", fake_run)
    probe = DockerInfoProbe()

    assert probe.probe() is None
    assert probe.probe() is None
    assert len(fake_run.calls) == 1
    with pytest.raises(DockerUnavailableError, match="Cannot connect"):
        probe.require()
