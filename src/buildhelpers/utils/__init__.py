"""Utility exports for filesystem, hashing, archive, and concurrency helpers."""

from buildhelpers.utils.archive import ArchiveError, extract
from buildhelpers.utils.concurrency import BoundedSemaphore, CancellationToken, background_token
from buildhelpers.utils.fs import (
    atomic_write,
    copy,
    create_parent_dir,
    file_concat,
    find_files,
    find_replace,
    is_up_to_date,
)
from buildhelpers.utils.hashing import (
    ChecksumMismatchError,
    create_sha512_file,
    sha256_file,
    sha512_file,
    verify_sha256,
)
from buildhelpers.utils.shell import CommandError, env_or, output, run, run_cmds

__all__ = [
    "ArchiveError",
    "BoundedSemaphore",
    "CancellationToken",
    "ChecksumMismatchError",
    "CommandError",
    "atomic_write",
    "background_token",
    "copy",
    "create_parent_dir",
    "create_sha512_file",
    "env_or",
    "extract",
    "file_concat",
    "find_files",
    "find_replace",
    "is_up_to_date",
    "output",
    "run",
    "run_cmds",
    "sha256_file",
    "sha512_file",
    "verify_sha256",
]
