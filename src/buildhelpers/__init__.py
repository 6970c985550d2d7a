"""
build-helpers: helpers for project build scripts.

The centrepiece is :mod:`buildhelpers.parallel`, a bounded-parallel task runner
that waits for every task and reports all failures together. The remaining
modules cover template expansion, file copying, archive extraction, checksums,
downloads and command execution.

Importing the package has no side effects (no config loading, no logging setup).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
