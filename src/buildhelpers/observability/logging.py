"""Per-run JSON-lines logs for build-helpers.

Library modules log through ``logging.getLogger(__name__)`` and stay silent
until a front end starts a :class:`RunLog`. A run log writes one JSON object
per record to ``<log_dir>/<run_id>/build.jsonl``; records travel through a
bounded queue so parallel workers never block on file I/O. Closing the run log
appends a ``run finished`` summary record.
"""

from __future__ import annotations

import atexit
import contextvars
import copy
import json
import logging
import logging.handlers
import math
import queue
import sys
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Final

RUN_LOG_FILENAME: Final[str] = "build.jsonl"

_ROOT_LOGGER: Final[str] = "buildhelpers"
_QUEUE_SIZE: Final[int] = 4096
_DRAIN_TIMEOUT_SECONDS: Final[float] = 2.0

# Anything on a record outside these attributes arrived through ``extra=``.
_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(vars(logging.makeLogRecord({}))) | {
    "asctime",
    "correlation",
    "message",
}

_correlation: contextvars.ContextVar[tuple[tuple[str, str], ...]] = contextvars.ContextVar(
    "buildhelpers_correlation", default=()
)

_active_lock = threading.Lock()
_active: RunLog | None = None
_atexit_registered = False


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    run_id: str
    log_dir: Path | str = Path("logs")
    level: int | str = "INFO"
    to_stderr: bool = False
    logger_name: str = _ROOT_LOGGER
    queue_size: int = _QUEUE_SIZE


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Bind fields such as ``command`` or ``task`` to every record logged inside.

    ``None`` unbinds a field. Runner workers copy the context of the thread that
    started them, so they inherit the caller's fields.
    """
    bound = dict(_correlation.get())
    for key, value in fields.items():
        if value is None:
            bound.pop(key, None)
        elif isinstance(value, str) and value.strip():
            bound[key] = value.strip()
        else:
            raise ValueError(f"correlation field {key!r} must be a non-empty string")
    token = _correlation.set(tuple(bound.items()))
    try:
        yield
    finally:
        _correlation.reset(token)


def current_correlation() -> dict[str, str]:
    return dict(_correlation.get())


class RunLog:
    """Queue-backed JSON-lines sink for one build run."""

    def __init__(self, config: LoggingConfig) -> None:
        run_id = config.run_id.strip() if isinstance(config.run_id, str) else ""
        if not run_id:
            raise ValueError("run_id must not be empty")
        if config.queue_size <= 0:
            raise ValueError("queue_size must be > 0")
        level = _level_number(config.level)

        self.run_id = run_id
        self.path = Path(config.log_dir) / run_id / RUN_LOG_FILENAME
        self.path.parent.mkdir(parents=True, exist_ok=True)

        self._started = time.monotonic()
        self._dropped = 0
        self._state_lock = threading.Lock()
        self._closed = False

        formatter = _JsonLinesFormatter(run_id)
        sinks: list[logging.Handler] = [logging.FileHandler(self.path, encoding="utf-8")]
        if config.to_stderr:
            sinks.append(logging.StreamHandler(sys.stderr))
        for sink in sinks:
            sink.setFormatter(formatter)
        self._sinks = tuple(sinks)

        self._queue: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=config.queue_size)
        self._handler = _CorrelatingQueueHandler(self._queue, on_drop=self._count_drop)
        self._listener = logging.handlers.QueueListener(self._queue, *sinks)

        self.logger = logging.getLogger(config.logger_name)
        self.logger.setLevel(level)
        self.logger.propagate = False
        for stale in list(self.logger.handlers):
            self.logger.removeHandler(stale)
            stale.close()
        self._listener.start()
        self.logger.addHandler(self._handler)

    @property
    def dropped_records(self) -> int:
        with self._state_lock:
            return self._dropped

    @property
    def closed(self) -> bool:
        with self._state_lock:
            return self._closed

    def close(self) -> None:
        """Append the run summary, drain queued records, and close every sink."""
        with self._state_lock:
            if self._closed:
                return
            self._closed = True

        self.logger.info(
            "run finished",
            extra={
                "elapsed_seconds": round(time.monotonic() - self._started, 3),
                "dropped_records": self.dropped_records,
            },
        )
        self.logger.removeHandler(self._handler)

        # The listener's stop sentinel needs a free queue slot.
        deadline = time.monotonic() + _DRAIN_TIMEOUT_SECONDS
        while self._queue.full() and time.monotonic() < deadline:
            time.sleep(0.01)
        self._listener.stop()
        for sink in self._sinks:
            sink.close()

    def _count_drop(self) -> None:
        with self._state_lock:
            self._dropped += 1


def start_run_log(config: LoggingConfig) -> RunLog:
    """Start the process-wide run log, closing the previous one first."""
    global _active, _atexit_registered

    with _active_lock:
        previous, _active = _active, None
    if previous is not None:
        previous.close()

    run_log = RunLog(config)
    with _active_lock:
        _active = run_log
        if not _atexit_registered:
            atexit.register(shutdown_logging)
            _atexit_registered = True
    return run_log


def setup_logging(
    observability: Mapping[str, object] | None = None,
    *,
    run_id: str,
    log_dir: Path | str | None = None,
    log_to_stderr: bool | None = None,
) -> RunLog:
    """Start a run log from an ``[observability]`` config section plus CLI overrides."""
    section = observability or {}
    level = section.get("log_level", "INFO")
    configured_dir = section.get("log_dir", "logs")
    stderr = section.get("log_to_stderr", False) if log_to_stderr is None else log_to_stderr
    return start_run_log(
        LoggingConfig(
            run_id=run_id,
            log_dir=log_dir if log_dir is not None else str(configured_dir),
            level=level if isinstance(level, (int, str)) else "INFO",
            to_stderr=bool(stderr),
        )
    )


def shutdown_logging(run_log: RunLog | None = None) -> None:
    """Close ``run_log``, or the active run log when none is given."""
    global _active

    with _active_lock:
        target = run_log if run_log is not None else _active
        if target is _active:
            _active = None
    if target is not None:
        target.close()


class _CorrelatingQueueHandler(logging.handlers.QueueHandler):
    """Snapshot correlation on the emitting thread; drop records when the queue is full."""

    def __init__(
        self, log_queue: queue.Queue[logging.LogRecord], *, on_drop: Callable[[], None]
    ) -> None:
        super().__init__(log_queue)
        self._on_drop = on_drop

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        prepared = copy.copy(record)
        prepared.message = record.getMessage()
        prepared.msg = prepared.message
        prepared.args = None
        if record.exc_info:
            prepared.exc_text = logging.Formatter().formatException(record.exc_info)
        prepared.exc_info = None
        prepared.correlation = current_correlation()
        return prepared

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            self._on_drop()


class _JsonLinesFormatter(logging.Formatter):
    def __init__(self, run_id: str) -> None:
        super().__init__()
        self._run_id = run_id

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        event: dict[str, object] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
            "run_id": self._run_id,
        }
        event.update(getattr(record, "correlation", {}))

        fields = {
            key: _jsonable(value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        }
        if fields:
            event["fields"] = fields
        if record.exc_text:
            event["exception"] = record.exc_text
        if record.stack_info:
            event["stack"] = record.stack_info
        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _level_number(level: int | str) -> int:
    if isinstance(level, int):
        return level
    number = logging.getLevelNamesMapping().get(level.strip().upper())
    if number is None:
        raise ValueError(f"unsupported logging level {level!r}")
    return number


def _jsonable(value: object) -> object:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else repr(value)
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    return repr(value)


__all__ = [
    "RUN_LOG_FILENAME",
    "LoggingConfig",
    "RunLog",
    "correlation_scope",
    "current_correlation",
    "setup_logging",
    "shutdown_logging",
    "start_run_log",
]
