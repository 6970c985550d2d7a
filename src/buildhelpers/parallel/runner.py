"""Bounded-parallel task runner.

Every task gets its own worker thread; a shared :class:`BoundedSemaphore` caps
how many execute at once. Failures are collected rather than short-circuiting:
the runner always waits for every task and then reports all failures together.
"""

from __future__ import annotations

import contextvars
import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Final

from buildhelpers.observability.logging import correlation_scope
from buildhelpers.utils.concurrency import BoundedSemaphore, CancellationToken, background_token

logger = logging.getLogger(__name__)

TaskResult = BaseException | str | None
Task = Callable[[CancellationToken], TaskResult]

_THREAD_NAME_PREFIX: Final[str] = "buildhelpers-parallel"


class ParallelError(RuntimeError):
    """Aggregated failure of one parallel run; the message joins every failure."""

    def __init__(self, failures: Iterable[str]) -> None:
        self.failures: tuple[str, ...] = tuple(failures)
        super().__init__("\n".join(self.failures))


@dataclass(frozen=True, slots=True)
class ExecutionReport:
    """Outcome of one run. ``failures`` order is completion order, not submission order."""

    total: int
    failures: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def succeeded(self) -> int:
        return self.total - len(self.failures)

    def raise_for_failures(self) -> None:
        if self.failures:
            raise ParallelError(self.failures)


def as_task(fn: Callable[[], TaskResult]) -> Task:
    """Adapt a zero-argument callable to the token-taking task interface."""

    def task(_token: CancellationToken) -> TaskResult:
        return fn()

    task.__name__ = getattr(fn, "__name__", task.__name__)
    task.__qualname__ = getattr(fn, "__qualname__", task.__qualname__)
    return task


class ParallelRunner:
    """Run tasks concurrently under a caller-owned limiter."""

    def __init__(self, limiter: BoundedSemaphore) -> None:
        self._limiter = limiter

    @property
    def limiter(self) -> BoundedSemaphore:
        return self._limiter

    def run(
        self,
        tasks: Iterable[Task],
        token: CancellationToken | None = None,
    ) -> ExecutionReport:
        """Run every task and block until all finish; never raises for task failures."""

        pending = list(tasks)
        if not pending:
            return ExecutionReport(total=0)

        shared_token = token if token is not None else background_token()
        failures: list[str] = []
        failures_lock = threading.Lock()
        started = time.monotonic()

        workers: list[threading.Thread] = []
        for index, task in enumerate(pending):
            # Each worker inherits the caller's correlation fields.
            context = contextvars.copy_context()
            worker = threading.Thread(
                target=context.run,
                args=(self._run_one, index, task, shared_token, failures, failures_lock),
                name=f"{_THREAD_NAME_PREFIX}-{index}",
                daemon=True,
            )
            try:
                worker.start()
            except RuntimeError as exc:
                # Never ran; reported like any other failure.
                logger.error("could not start worker for parallel job %d: %s", index, exc)
                with failures_lock:
                    failures.append(f"unable to start {_task_name(task, index)}: {exc}")
                continue
            workers.append(worker)

        for worker in workers:
            worker.join()

        report = ExecutionReport(total=len(pending), failures=tuple(failures))
        summary = {
            "total": report.total,
            "failed": len(report.failures),
            "peak_in_use": self._limiter.peak_in_use,
            "elapsed_seconds": round(time.monotonic() - started, 3),
        }
        if report.failures:
            logger.warning(
                "%d of %d parallel jobs failed", len(report.failures), report.total, extra=summary
            )
        else:
            logger.info("%d parallel jobs succeeded", report.total, extra=summary)
        return report

    def run_in_parallel(
        self,
        tasks: Iterable[Task],
        token: CancellationToken | None = None,
    ) -> None:
        """Run every task, then raise :class:`ParallelError` if any failed."""

        self.run(tasks, token).raise_for_failures()

    def _run_one(
        self,
        index: int,
        task: Task,
        token: CancellationToken,
        failures: list[str],
        failures_lock: threading.Lock,
    ) -> None:
        task_name = _task_name(task, index)
        try:
            message = self._execute(task_name, task, token)
        except BaseException as exc:  # noqa: BLE001 - reported as a failure.
            logger.error("parallel job %s raised", task_name, exc_info=exc)
            message = _describe_fault(exc)

        if message is not None:
            with failures_lock:
                failures.append(message)

    def _execute(self, task_name: str, task: Task, token: CancellationToken) -> str | None:
        wait_start = time.monotonic()
        with self._limiter.permit(), correlation_scope(task=task_name):
            logger.debug(
                "parallel job waited %.3fs before starting",
                time.monotonic() - wait_start,
            )
            return _describe_result(task(token))


def run_in_parallel(
    tasks: Iterable[Task],
    token: CancellationToken | None = None,
    *,
    limiter: BoundedSemaphore,
) -> None:
    """Run ``tasks`` under ``limiter``; raise one :class:`ParallelError` for all failures."""

    ParallelRunner(limiter).run_in_parallel(tasks, token)


def _task_name(task: Task, index: int) -> str:
    name = getattr(task, "__name__", "")
    if not isinstance(name, str) or not name.strip() or name == "<lambda>":
        return f"task-{index}"
    return name.strip()


def _describe_result(result: object) -> str | None:
    if result is None:
        return None
    if isinstance(result, BaseException):
        return str(result) or result.__class__.__name__
    if isinstance(result, str):
        return result or "task failed"
    return f"task returned unexpected value {result!r}"


def _describe_fault(exc: BaseException) -> str:
    detail = str(exc)
    if not detail:
        return f"unexpected {exc.__class__.__name__}"
    return f"unexpected {exc.__class__.__name__}: {detail}"


__all__ = [
    "ExecutionReport",
    "ParallelError",
    "ParallelRunner",
    "Task",
    "TaskResult",
    "as_task",
    "run_in_parallel",
]
