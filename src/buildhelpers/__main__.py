"""Module entrypoint for ``python -m buildhelpers``."""

from __future__ import annotations

from buildhelpers.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
