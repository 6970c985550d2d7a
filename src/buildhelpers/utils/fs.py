"""
build-helpers: filesystem utilities

Purpose
- Copy files and directory trees while keeping permission bits.
- Rewrite, concatenate, and discover files for build steps.
- Decide whether a generated artifact is stale relative to its sources.

Functional requirements
- Atomic writes use temp files in the destination directory and replace in a single step.
- Parent directories of outputs are created on demand.
"""

from __future__ import annotations

import contextlib
import glob
import os
import re
import shutil
import stat
import tempfile
from pathlib import Path

from buildhelpers.constants import DEFAULT_DIR_MODE

PathLike = str | os.PathLike[str]

_COPY_CHUNK_BYTES = 1024 * 1024

__all__ = [
    "PathLike",
    "atomic_write",
    "copy",
    "create_parent_dir",
    "file_concat",
    "find_files",
    "find_replace",
    "is_up_to_date",
]


def atomic_write(
    path: PathLike,
    data: bytes | str,
    *,
    encoding: str = "utf-8",
    mode: int | None = None,
) -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. apply ``mode`` if given,
    4. replace target via ``os.replace``.
    """

    target = Path(path)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        if isinstance(data, bytes):
            with os.fdopen(fd, "wb") as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())
        else:
            with os.fdopen(fd, "w", encoding=encoding) as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())

        if mode is not None:
            os.chmod(temp_path, mode)
        os.replace(temp_path, target)
        _fsync_directory(target_parent)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def create_parent_dir(path: PathLike) -> Path:
    """Create the parent directory of ``path`` and return ``path`` as a ``Path``."""

    target = Path(path)
    parent = target.parent
    if str(parent) not in ("", "."):
        parent.mkdir(mode=DEFAULT_DIR_MODE, parents=True, exist_ok=True)
    return target


def copy(src: PathLike, dest: PathLike) -> None:
    """
    Copy a file or a directory tree from ``src`` to ``dest``.

    Permission bits are preserved. Symlinks are followed; sockets, FIFOs and
    device nodes are rejected.
    """

    source = Path(src)
    try:
        source_stat = source.stat()
    except OSError as exc:
        raise FileNotFoundError(f"failed to stat source file {source}: {exc}") from exc
    _recursive_copy(source, Path(dest), source_stat)


def find_replace(path: PathLike, pattern: str | re.Pattern[str], repl: str) -> int:
    """
    Replace every match of ``pattern`` in the file at ``path`` with ``repl``.

    The file keeps its permission bits. Returns the number of substitutions.
    """

    target = Path(path)
    file_mode = stat.S_IMODE(target.stat().st_mode)
    compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
    contents = target.read_text(encoding="utf-8")
    updated, count = compiled.subn(repl, contents)
    atomic_write(target, updated, mode=file_mode)
    return count


def file_concat(out: PathLike, mode: int, *files: PathLike) -> None:
    """Concatenate ``files`` in order into ``out`` (created with ``mode``)."""

    target = create_parent_dir(out)
    with target.open("wb") as writer:
        for file_path in files:
            with Path(file_path).open("rb") as reader:
                shutil.copyfileobj(reader, writer, _COPY_CHUNK_BYTES)
    os.chmod(target, mode)


def find_files(*patterns: str) -> list[str]:
    """Return paths matching the glob ``patterns``, in pattern order."""

    matches: list[str] = []
    for pattern in patterns:
        try:
            matches.extend(sorted(glob.glob(pattern, recursive=True)))
        except re.error as exc:
            raise ValueError(f"failed on glob {pattern!r}: {exc}") from exc
    return matches


def is_up_to_date(dst: PathLike, *sources: PathLike) -> bool:
    """
    Return ``True`` iff ``dst`` exists and is newer than every source.

    Directory sources are walked so that any file inside them counts. A
    missing source makes the target stale.
    """

    if not sources:
        raise ValueError("no sources passed to is_up_to_date")

    try:
        target_mtime = Path(dst).stat().st_mtime_ns
    except FileNotFoundError:
        return False

    for source in sources:
        newest = _newest_mtime(Path(source))
        if newest is None or newest > target_mtime:
            return False
    return True


def _newest_mtime(path: Path) -> int | None:
    try:
        newest = path.stat().st_mtime_ns
    except FileNotFoundError:
        return None
    if not path.is_dir():
        return newest

    for current_dir, _dir_names, file_names in os.walk(path):
        for file_name in file_names:
            with contextlib.suppress(FileNotFoundError):
                newest = max(newest, (Path(current_dir) / file_name).stat().st_mtime_ns)
    return newest


def _recursive_copy(src: Path, dest: Path, info: os.stat_result) -> None:
    if stat.S_ISDIR(info.st_mode):
        _dir_copy(src, dest, info)
        return
    _file_copy(src, dest, info)


def _file_copy(src: Path, dest: Path, info: os.stat_result) -> None:
    if not stat.S_ISREG(info.st_mode):
        raise ValueError(f"failed to copy {src}: not a regular file")

    target = create_parent_dir(dest)
    with src.open("rb") as reader, target.open("wb") as writer:
        shutil.copyfileobj(reader, writer, _COPY_CHUNK_BYTES)
    os.chmod(target, stat.S_IMODE(info.st_mode))


def _dir_copy(src: Path, dest: Path, info: os.stat_result) -> None:
    dest.mkdir(parents=True, exist_ok=True)

    for entry in sorted(src.iterdir()):
        child_dest = dest / entry.name
        try:
            _recursive_copy(entry, child_dest, entry.stat())
        except OSError as exc:
            exc.add_note(f"while copying {entry} to {child_dest}")
            raise

    # Applied last so read-only source directories can still be filled.
    os.chmod(dest, stat.S_IMODE(info.st_mode))


def _fsync_directory(path: Path) -> None:
    """
    Best-effort directory fsync for metadata durability after ``os.replace``.

    Some platforms/filesystems do not support fsync on directories.
    """

    if os.name == "nt":
        return

    flags = os.O_RDONLY
    if hasattr(os, "O_DIRECTORY"):
        flags |= os.O_DIRECTORY

    try:
        dir_fd = os.open(path, flags)
    except OSError:
        return

    try:
        os.fsync(dir_fd)
    except OSError:
        return
    finally:
        os.close(dir_fd)
