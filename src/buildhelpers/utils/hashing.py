"""
build-helpers: checksum utilities

Purpose
- Stream SHA-256 and SHA-512 digests of build inputs and artifacts.
- Verify downloaded files against published SHA-256 sums.
- Write ``<file>.sha512`` sidecars next to release artifacts.

Functional requirements
- Expected digests are compared after trimming whitespace, case-insensitively.
- Sidecar format matches ``sha512sum`` output: ``<hex>  <basename>``.
"""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from buildhelpers.constants import DEFAULT_FILE_MODE, SHA512_SIDECAR_SUFFIX
from buildhelpers.utils.fs import atomic_write

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

PathLike = str | os.PathLike[str]

_FILE_READ_CHUNK_BYTES = 1024 * 1024

__all__ = [
    "ChecksumMismatchError",
    "create_sha512_file",
    "sha256_file",
    "sha512_file",
    "verify_sha256",
]


class ChecksumMismatchError(ValueError):
    """Raised when a file's digest differs from the expected value."""

    def __init__(self, path: Path, expected: str, computed: str) -> None:
        self.path = path
        self.expected = expected
        self.computed = computed
        super().__init__(
            f"SHA256 verification of {path} failed. Expected={expected}, but computed={computed}"
        )


def sha256_file(path: PathLike, *, chunk_size: int = _FILE_READ_CHUNK_BYTES) -> str:
    """Return SHA-256 hex digest for a file read in chunks."""

    return _digest_file(path, hashlib.sha256, chunk_size)


def sha512_file(path: PathLike, *, chunk_size: int = _FILE_READ_CHUNK_BYTES) -> str:
    """Return SHA-512 hex digest for a file read in chunks."""

    return _digest_file(path, hashlib.sha512, chunk_size)


def verify_sha256(path: PathLike, expected: str) -> None:
    """Raise :class:`ChecksumMismatchError` unless ``path`` hashes to ``expected``."""

    target = Path(path)
    computed = sha256_file(target)
    expected_hash = expected.strip().lower()
    if computed != expected_hash:
        raise ChecksumMismatchError(target, expected_hash, computed)
    logger.info("SHA256 OK: %s", target)


def create_sha512_file(path: PathLike) -> Path:
    """Write ``<path>.sha512`` holding ``"<hex>  <basename>"`` and return its path."""

    target = Path(path)
    digest = sha512_file(target)
    sidecar = target.with_name(target.name + SHA512_SIDECAR_SUFFIX)
    atomic_write(sidecar, f"{digest}  {target.name}", mode=DEFAULT_FILE_MODE)
    return sidecar


def _digest_file(
    path: PathLike,
    factory: Callable[[], hashlib._Hash],
    chunk_size: int,
) -> str:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")
    digest = factory()
    with Path(path).open("rb") as file_handle:
        while True:
            chunk = file_handle.read(chunk_size)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()
