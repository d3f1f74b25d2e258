"""Logging setup for nsxdrift runs.

The rotating log file always records DEBUG; the console follows
NSXDRIFT_LOG_LEVEL. Fetch durations per resource category go to a
separate timings file next to the main log.

Environment Variables:
    NSXDRIFT_LOG_LEVEL: Console level, DEBUG/INFO/WARNING/ERROR (default: INFO)
    NSXDRIFT_LOG_FILE: Log file (default: ~/.nsxdrift/nsxdrift.log)
    NSXDRIFT_LOG_MAX_SIZE: Rotate after this many MB (default: 10)
    NSXDRIFT_LOG_BACKUPS: Rotated files kept (default: 5)
"""
import functools
import logging
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAMES = ("nsxdrift", "nsx_config_archive")
LINE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
TIMING_FORMAT = "%(asctime)s %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
TIMINGS_FILENAME = "nsxdrift-timings.log"

timing_logger = logging.getLogger("nsxdrift.timing")

# (logger, handler) pairs added by the last setup_logging call
_installed: list[tuple[logging.Logger, logging.Handler]] = []


def console_level() -> int:
    name = os.environ.get("NSXDRIFT_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def log_file_path() -> Path:
    default = Path.home() / ".nsxdrift" / "nsxdrift.log"
    return Path(os.environ.get("NSXDRIFT_LOG_FILE") or default)


def _rotating_handler(path: Path, formatter: logging.Formatter) -> RotatingFileHandler:
    max_mb = int(os.environ.get("NSXDRIFT_LOG_MAX_SIZE", "10"))
    handler = RotatingFileHandler(
        path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=int(os.environ.get("NSXDRIFT_LOG_BACKUPS", "5")),
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def _install(logger: logging.Logger, handler: logging.Handler) -> None:
    logger.addHandler(handler)
    _installed.append((logger, handler))


def reset_logging() -> None:
    """Remove and close every handler added by setup_logging."""
    while _installed:
        logger, handler = _installed.pop()
        logger.removeHandler(handler)
        handler.close()


def setup_logging(level: Optional[int] = None) -> Path:
    """Send nsxdrift logs to the console and a rotating log file.

    A second call replaces the handlers of the first one, so repeated
    runs in one process do not duplicate log lines.

    Args:
        level: Console level override (e.g. from --verbose)

    Returns:
        Path of the main log file
    """
    reset_logging()

    log_file = log_file_path()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LINE_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(level if level is not None else console_level())
    console.setFormatter(formatter)
    main_file = _rotating_handler(log_file, formatter)

    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG)
        _install(logger, console)
        _install(logger, main_file)

    # nsxdrift.timing also propagates to the main handlers
    timings_file = log_file.with_name(TIMINGS_FILENAME)
    _install(timing_logger, _rotating_handler(
        timings_file, logging.Formatter(TIMING_FORMAT, datefmt=DATE_FORMAT)
    ))

    logging.getLogger("nsxdrift").debug(f"Logging to {log_file}, fetch timings to {timings_file}")
    return log_file


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


@dataclass
class FetchTimings:
    """How long each resource category took to fetch in one run."""
    durations: dict[str, float] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)

    def record(self, category: str, elapsed_ms: float, ok: bool = True) -> None:
        self.durations[category] = elapsed_ms
        if not ok:
            self.failed.append(category)

    @property
    def total_ms(self) -> float:
        return sum(self.durations.values())

    def slowest(self, count: int = 5) -> list[tuple[str, float]]:
        return sorted(self.durations.items(), key=lambda item: item[1], reverse=True)[:count]

    def summary(self) -> str:
        if not self.durations:
            return "No categories fetched"
        lines = [f"Fetched {len(self.durations)} categories in {self.total_ms:.0f}ms, slowest:"]
        lines += [f"  {name:20s} {ms:8.1f}ms" for name, ms in self.slowest()]
        if self.failed:
            lines.append(f"  failed: {', '.join(self.failed)}")
        return "\n".join(lines)


@contextmanager
def timed_fetch(category: str, timings: Optional[FetchTimings] = None):
    """Time the fetch of one resource category.

    Usage:
        with timed_fetch("Edges", timings):
            documents = fetch_edges(connection)
    """
    start = time.perf_counter()
    try:
        yield
    except Exception as e:
        elapsed = _elapsed_ms(start)
        if timings is not None:
            timings.record(category, elapsed, ok=False)
        timing_logger.warning(f"fetch {category}: failed after {elapsed:.1f}ms: {e}")
        raise

    elapsed = _elapsed_ms(start)
    if timings is not None:
        timings.record(category, elapsed)
    timing_logger.debug(f"fetch {category}: {elapsed:.1f}ms")


def timed(operation: str):
    """Log how long a method of an object with a ``host`` takes.

    Usage:
        @timed("connect")
        def connect(self):
            ...
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            start = time.perf_counter()
            try:
                return func(self, *args, **kwargs)
            finally:
                timing_logger.debug(f"{operation} {self.host}: {_elapsed_ms(start):.1f}ms")
        return wrapper
    return decorator
