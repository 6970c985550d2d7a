"""Probes of the host build environment."""

from buildhelpers.environment.docker import (
    DockerInfo,
    DockerInfoProbe,
    DockerUnavailableError,
    have_docker,
)

__all__ = ["DockerInfo", "DockerInfoProbe", "DockerUnavailableError", "have_docker"]
