"""Utility modules for logging and retry helpers."""
from .connection import with_retry, RETRYABLE_EXCEPTIONS
from .logging_config import (
    setup_logging,
    reset_logging,
    timed,
    timed_fetch,
    timing_logger,
    FetchTimings,
)

__all__ = [
    "with_retry",
    "RETRYABLE_EXCEPTIONS",
    "setup_logging",
    "reset_logging",
    "timed",
    "timed_fetch",
    "timing_logger",
    "FetchTimings",
]
