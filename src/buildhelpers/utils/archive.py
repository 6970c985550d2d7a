"""Archive extraction for downloaded build dependencies (zip, tar.gz, tgz, tar)."""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tarfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import Final

from buildhelpers.constants import DEFAULT_DIR_MODE, DEFAULT_FILE_MODE

logger = logging.getLogger(__name__)

PathLike = str | os.PathLike[str]

_COPY_CHUNK_BYTES: Final[int] = 1024 * 1024


class ArchiveError(ValueError):
    """Raised for unsupported or unsafe archives."""


def extract(source: PathLike, destination: PathLike) -> None:
    """Extract ``source`` into ``destination`` based on its file extension."""

    source_path = Path(source)
    name = source_path.name.lower()
    if name.endswith((".tar.gz", ".tgz")):
        _untar(source_path, Path(destination), compressed=True)
    elif name.endswith(".tar"):
        _untar(source_path, Path(destination), compressed=False)
    elif name.endswith(".zip"):
        _unzip(source_path, Path(destination))
    else:
        raise ArchiveError(f"failed to extract {source_path}, unhandled file extension")
    logger.debug("extracted %s into %s", source_path, destination)


def _unzip(source: Path, destination: Path) -> None:
    destination.mkdir(mode=DEFAULT_DIR_MODE, parents=True, exist_ok=True)
    root = destination.resolve()

    with zipfile.ZipFile(source) as archive:
        for member in archive.infolist():
            target = _safe_member_path(root, member.filename, kind="zip")
            mode = _zip_member_mode(member)
            if member.is_dir():
                target.mkdir(mode=mode or DEFAULT_DIR_MODE, parents=True, exist_ok=True)
                continue

            target.parent.mkdir(mode=DEFAULT_DIR_MODE, parents=True, exist_ok=True)
            with archive.open(member) as reader, target.open("wb") as writer:
                shutil.copyfileobj(reader, writer, _COPY_CHUNK_BYTES)
            os.chmod(target, mode or DEFAULT_FILE_MODE)


def _untar(source: Path, destination: Path, *, compressed: bool) -> None:
    destination.mkdir(mode=DEFAULT_DIR_MODE, parents=True, exist_ok=True)
    root = destination.resolve()

    with tarfile.open(source, mode="r:gz" if compressed else "r:") as archive:
        for member in archive:
            target = _safe_member_path(root, member.name, kind="tar")
            if member.isdir():
                target.mkdir(parents=True, exist_ok=True)
                os.chmod(target, stat.S_IMODE(member.mode))
                continue
            if not member.isreg():
                raise ArchiveError(
                    f"unable to untar type={member.type.decode(errors='replace')} in file={target}"
                )

            target.parent.mkdir(mode=DEFAULT_DIR_MODE, parents=True, exist_ok=True)
            reader = archive.extractfile(member)
            if reader is None:
                raise ArchiveError(f"unable to read {member.name} from {source}")
            with reader, target.open("wb") as writer:
                shutil.copyfileobj(reader, writer, _COPY_CHUNK_BYTES)
            os.chmod(target, stat.S_IMODE(member.mode))


def _safe_member_path(root: Path, member_name: str, *, kind: str) -> Path:
    posix_path = PurePosixPath(member_name.replace("\\", "/"))
    if posix_path.is_absolute() or ".." in posix_path.parts:
        raise ArchiveError(f"illegal file path in {kind}: {member_name}")

    target = root.joinpath(*(part for part in posix_path.parts if part not in ("", ".")))
    resolved = target.resolve()
    if resolved != root and root not in resolved.parents:
        raise ArchiveError(f"illegal file path in {kind}: {member_name}")
    return target


def _zip_member_mode(member: zipfile.ZipInfo) -> int:
    # Unix permission bits live in the high 16 bits of external_attr.
    return stat.S_IMODE(member.external_attr >> 16)


__all__ = ["ArchiveError", "extract"]
