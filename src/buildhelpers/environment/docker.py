"""Docker daemon probe used for availability checks and the parallelism capacity hint.

The probe shells out to ``docker info`` once and caches the outcome (success or
failure) on the probe instance. Detection never raises from ``probe()`` callers
that only want a hint; ``require()`` turns a failed probe into an error.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import threading
from dataclasses import dataclass
from typing import Final

logger = logging.getLogger(__name__)

DEFAULT_DOCKER_BINARY: Final[str] = "docker"
_INFO_FORMAT: Final[str] = "{{ json .}}"
_PROBE_TIMEOUT_SECONDS: Final[float] = 15.0


class DockerUnavailableError(RuntimeError):
    """Raised when the docker daemon cannot be queried."""


@dataclass(frozen=True, slots=True)
class DockerInfo:
    """Subset of ``docker info`` describing the daemon host."""

    operating_system: str
    labels: tuple[str, ...]
    ncpu: int
    mem_total: int

    @property
    def is_boot2docker(self) -> bool:
        """True when the daemon runs inside the boot2docker VM."""
        return "boot2docker" in self.operating_system.lower()

    @classmethod
    def from_json(cls, payload: str) -> DockerInfo:
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise DockerUnavailableError(f"docker info returned invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise DockerUnavailableError("docker info JSON root must be an object")

        labels = data.get("Labels") or []
        if not isinstance(labels, list):
            labels = []
        return cls(
            operating_system=str(data.get("OperatingSystem") or ""),
            labels=tuple(str(label) for label in labels),
            ncpu=_as_int(data.get("NCPU")),
            mem_total=_as_int(data.get("MemTotal")),
        )


class DockerInfoProbe:
    """Query ``docker info`` at most once per probe instance."""

    def __init__(
        self,
        binary: str = DEFAULT_DOCKER_BINARY,
        *,
        timeout_seconds: float = _PROBE_TIMEOUT_SECONDS,
    ) -> None:
        self._binary = binary
        self._timeout_seconds = timeout_seconds
        self._lock = threading.Lock()
        self._done = False
        self._info: DockerInfo | None = None
        self._error: DockerUnavailableError | None = None

    def probe(self) -> DockerInfo | None:
        """Return cached daemon info, or ``None`` if docker is unavailable."""
        with self._lock:
            if not self._done:
                try:
                    self._info = self._query()
                except DockerUnavailableError as exc:
                    logger.debug("docker info unavailable: %s", exc)
                    self._error = exc
                self._done = True
            return self._info

    def require(self) -> DockerInfo:
        """Return daemon info or raise :class:`DockerUnavailableError`."""
        info = self.probe()
        if info is None:
            raise DockerUnavailableError(f"docker is not available: {self._error}")
        return info

    def _query(self) -> DockerInfo:
        path = shutil.which(self._binary)
        if path is None:
            raise DockerUnavailableError(f"{self._binary!r} not found on PATH")
        try:
            result = subprocess.run(
                [path, "info", "-f", _INFO_FORMAT],
                capture_output=True,
                text=True,
                timeout=self._timeout_seconds,
                check=False,
            )
        except (subprocess.TimeoutExpired, OSError) as exc:
            raise DockerUnavailableError(f"docker info failed: {exc}") from exc
        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit code {result.returncode}"
            raise DockerUnavailableError(f"docker info failed: {detail}")
        return DockerInfo.from_json(result.stdout)


def have_docker(probe: DockerInfoProbe | None = None) -> None:
    """Raise :class:`DockerUnavailableError` unless the docker daemon answers."""
    (probe or DockerInfoProbe()).require()


def _as_int(value: object) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return 0
    return 0


__all__ = [
    "DEFAULT_DOCKER_BINARY",
    "DockerInfo",
    "DockerInfoProbe",
    "DockerUnavailableError",
    "have_docker",
]
