"""Utility modules for Switchyard."""

from switchyard.utils.logging import ContextLogger, resolve_logger, set_log_level, setup_logger
from switchyard.utils.retry import BackoffPolicy
from switchyard.utils.time import epoch_ms, from_epoch_ms, utc_now

__all__ = [
    "setup_logger",
    "set_log_level",
    "resolve_logger",
    "ContextLogger",
    "BackoffPolicy",
    "epoch_ms",
    "from_epoch_ms",
    "utc_now",
]
