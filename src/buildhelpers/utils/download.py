"""HTTP download of build dependencies, streamed to disk with ``httpx``."""

from __future__ import annotations

import contextlib
import logging
import os
import posixpath
from pathlib import Path
from typing import Final
from urllib.parse import unquote, urlsplit

import httpx

from buildhelpers.utils.fs import create_parent_dir

logger = logging.getLogger(__name__)

PathLike = str | os.PathLike[str]

DEFAULT_TIMEOUT_SECONDS: Final[float] = 60.0


class DownloadError(RuntimeError):
    """Raised when a download fails or returns a non-200 status."""


def download_file(
    url: str,
    destination_dir: PathLike,
    *,
    client: httpx.Client | None = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> Path:
    """Download ``url`` into ``destination_dir`` and return the written path."""

    name = _file_name_from_url(url)
    target = create_parent_dir(Path(destination_dir) / name)
    logger.info("downloading %s", url)

    owns_client = client is None
    http = client if client is not None else httpx.Client(timeout=timeout_seconds)
    try:
        with http.stream("GET", url, follow_redirects=True) as response:
            if response.status_code != httpx.codes.OK:
                raise DownloadError(
                    f"download failed with http status: {response.status_code}"
                )
            with target.open("wb") as writer:
                for chunk in response.iter_bytes():
                    writer.write(chunk)
    except httpx.HTTPError as exc:
        with contextlib.suppress(OSError):
            target.unlink(missing_ok=True)
        raise DownloadError(f"http get failed: {exc}") from exc
    finally:
        if owns_client:
            http.close()

    return target


def _file_name_from_url(url: str) -> str:
    path = unquote(urlsplit(url).path)
    name = posixpath.basename(path.rstrip("/"))
    if not name or name in (".", ".."):
        raise DownloadError(f"cannot derive a file name from url {url!r}")
    return name


__all__ = ["DEFAULT_TIMEOUT_SECONDS", "DownloadError", "download_file"]
