"""Command-line interface router for build-helpers."""

from __future__ import annotations

import argparse
import json
import shlex
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from buildhelpers import __version__
from buildhelpers.config import load_config
from buildhelpers.environment.docker import DockerInfoProbe
from buildhelpers.observability.logging import correlation_scope, setup_logging, shutdown_logging
from buildhelpers.parallel.capacity import (
    RunnerConfig,
    create_limiter,
    docker_capacity_hint,
    resolve_runner_config,
)
from buildhelpers.parallel.runner import ParallelRunner, Task, TaskResult
from buildhelpers.templates import expand_file
from buildhelpers.utils.archive import extract
from buildhelpers.utils.concurrency import CancellationToken
from buildhelpers.utils.download import download_file
from buildhelpers.utils.fs import copy
from buildhelpers.utils.hashing import create_sha512_file, verify_sha256
from buildhelpers.utils.shell import CommandError, run


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 2

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router."""

    parser = argparse.ArgumentParser(
        prog="buildhelpers",
        description=(
            "build-helpers: helper commands for project build scripts.\n\n"
            "Common workflows:\n"
            "  buildhelpers parallel 'make a' 'make b'   Run commands under the parallel cap\n"
            "  buildhelpers info                         Show config and resolved cap\n"
            "  buildhelpers verify-sha256 FILE HASH      Check a downloaded file\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to buildhelpers TOML config (default: ./buildhelpers.toml if present).",
    )
    common.add_argument(
        "--log-dir",
        default=None,
        help="Override the directory that receives per-run JSON-lines logs.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Log at DEBUG level and mirror logs to stderr.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    info_parser = subparsers.add_parser(
        "info", parents=[common], help="Show effective config and the resolved parallel cap"
    )
    info_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    info_parser.add_argument(
        "--no-docker", action="store_true", help="Skip the docker capacity hint"
    )
    info_parser.set_defaults(handler=_cmd_info)

    parallel_parser = subparsers.add_parser(
        "parallel",
        parents=[common],
        help="Run shell commands concurrently and report every failure",
        description=(
            "Each COMMAND is one shell-quoted command line. All commands run to\n"
            "completion; failures are reported together at the end.\n\n"
            "Examples:\n"
            "  buildhelpers parallel 'go build ./a' 'go build ./b'\n"
            "  MAX_PARALLEL=2 buildhelpers parallel 'make x' 'make y' 'make z'\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parallel_parser.add_argument("commands", nargs="+", metavar="COMMAND")
    parallel_parser.add_argument(
        "--max-parallel", type=int, default=None, help="Override the concurrency cap"
    )
    parallel_parser.add_argument(
        "--no-docker", action="store_true", help="Skip the docker capacity hint"
    )
    parallel_parser.set_defaults(handler=_cmd_parallel)

    extract_parser = subparsers.add_parser(
        "extract", parents=[common], help="Extract a .zip, .tar.gz, .tgz or .tar archive"
    )
    extract_parser.add_argument("archive")
    extract_parser.add_argument("destination")
    extract_parser.set_defaults(handler=_cmd_extract)

    verify_parser = subparsers.add_parser(
        "verify-sha256", parents=[common], help="Verify a file against a SHA-256 hex digest"
    )
    verify_parser.add_argument("file")
    verify_parser.add_argument("sha256")
    verify_parser.set_defaults(handler=_cmd_verify_sha256)

    sha512_parser = subparsers.add_parser(
        "sha512", parents=[common], help="Write <file>.sha512 sidecars"
    )
    sha512_parser.add_argument("files", nargs="+")
    sha512_parser.set_defaults(handler=_cmd_sha512)

    expand_parser = subparsers.add_parser(
        "expand", parents=[common], help="Render a template file to a (templated) path"
    )
    expand_parser.add_argument("source")
    expand_parser.add_argument("destination")
    expand_parser.add_argument(
        "--var",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Template variable (repeatable)",
    )
    expand_parser.set_defaults(handler=_cmd_expand)

    copy_parser = subparsers.add_parser(
        "copy", parents=[common], help="Copy a file or directory, preserving permissions"
    )
    copy_parser.add_argument("source")
    copy_parser.add_argument("destination")
    copy_parser.set_defaults(handler=_cmd_copy)

    download_parser = subparsers.add_parser(
        "download", parents=[common], help="Download a URL into a directory"
    )
    download_parser.add_argument("url")
    download_parser.add_argument("destination_dir")
    download_parser.add_argument("--sha256", default=None, help="Expected SHA-256 of the file")
    download_parser.set_defaults(handler=_cmd_download)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    config = load_config(namespace.config_path)
    run_id = uuid4().hex[:12]
    observability = dict(config["observability"])
    if namespace.verbose:
        observability["log_level"] = "DEBUG"
    setup_logging(
        observability,
        run_id=run_id,
        log_dir=namespace.log_dir,
        log_to_stderr=True if namespace.verbose else None,
    )
    try:
        with correlation_scope(command=namespace.command):
            return int(handler(namespace, config))
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    finally:
        shutdown_logging()


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_info(args: argparse.Namespace, config: dict[str, Any]) -> int:
    runner_config = _resolve_runner_config(config, override=None, use_docker=not args.no_docker)
    payload = {
        "config": config,
        "parallel": {
            "max_concurrency": runner_config.max_concurrency,
            "source": runner_config.source.value,
        },
        "version": __version__,
    }
    if args.json:
        print(json.dumps(payload, sort_keys=True, indent=2))
        return 0

    print(f"buildhelpers {__version__}")
    print(
        f"max parallel jobs: {runner_config.max_concurrency} ({runner_config.source.value})"
    )
    print(f"log dir: {config['observability']['log_dir']}")
    return 0


def _cmd_parallel(args: argparse.Namespace, config: dict[str, Any]) -> int:
    if args.max_parallel is not None and args.max_parallel <= 0:
        raise CLIError("--max-parallel must be > 0")

    tasks = [_command_task(command) for command in args.commands]
    runner_config = _resolve_runner_config(
        config, override=args.max_parallel, use_docker=not args.no_docker
    )
    runner = ParallelRunner(create_limiter(runner_config))
    runner.run_in_parallel(tasks, CancellationToken())
    print(f"{len(tasks)} command(s) succeeded")
    return 0


def _cmd_extract(args: argparse.Namespace, config: dict[str, Any]) -> int:
    extract(args.archive, args.destination)
    return 0


def _cmd_verify_sha256(args: argparse.Namespace, config: dict[str, Any]) -> int:
    verify_sha256(args.file, args.sha256)
    print(f"SHA256 OK: {args.file}")
    return 0


def _cmd_sha512(args: argparse.Namespace, config: dict[str, Any]) -> int:
    for file_name in args.files:
        print(create_sha512_file(file_name))
    return 0


def _cmd_expand(args: argparse.Namespace, config: dict[str, Any]) -> int:
    variables = _parse_vars(args.var)
    print(expand_file(args.source, args.destination, variables))
    return 0


def _cmd_copy(args: argparse.Namespace, config: dict[str, Any]) -> int:
    copy(args.source, args.destination)
    return 0


def _cmd_download(args: argparse.Namespace, config: dict[str, Any]) -> int:
    target = download_file(
        args.url,
        args.destination_dir,
        timeout_seconds=config["download"]["timeout_seconds"],
    )
    if args.sha256:
        verify_sha256(target, args.sha256)
    print(target)
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_runner_config(
    config: dict[str, Any], *, override: int | None, use_docker: bool
) -> RunnerConfig:
    parallel = config["parallel"]
    hint = None
    if use_docker and parallel["use_docker_hint"]:
        hint = docker_capacity_hint(DockerInfoProbe(parallel["docker_binary"]))
    return resolve_runner_config(
        override=override if override is not None else parallel["max_parallel"],
        capacity_hint=hint,
    )


def _command_task(command: str) -> Task:
    try:
        argv = shlex.split(command)
    except ValueError as exc:
        raise CLIError(f"cannot parse command {command!r}: {exc}") from exc
    if not argv:
        raise CLIError("empty command")

    def task(token: CancellationToken) -> TaskResult:
        token.raise_if_cancelled()
        try:
            run(argv)
        except CommandError as exc:
            return exc
        return None

    task.__name__ = argv[0]
    return task


def _parse_vars(raw_vars: Sequence[str]) -> dict[str, str]:
    variables: dict[str, str] = {}
    for item in raw_vars:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise CLIError(f"invalid --var {item!r}; expected KEY=VALUE")
        variables[key.strip()] = value
    return variables


__all__ = ["CLIError", "build_parser", "run_cli"]
