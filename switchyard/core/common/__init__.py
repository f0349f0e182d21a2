"""Common types and exceptions."""

from switchyard.core.common.exceptions import (
    CompletionAlreadyRegisteredError,
    CompletionError,
    ConfigurationError,
    DispatcherStateError,
    InvalidWorkerStateError,
    ItemNotFoundError,
    QueueConnectionError,
    QueueError,
    SwitchyardError,
    WorkerStateError,
)
from switchyard.core.common.types import ItemStatus, Priority

__all__ = [
    "Priority",
    "ItemStatus",
    "SwitchyardError",
    "ConfigurationError",
    "QueueError",
    "ItemNotFoundError",
    "QueueConnectionError",
    "WorkerStateError",
    "InvalidWorkerStateError",
    "CompletionError",
    "CompletionAlreadyRegisteredError",
    "DispatcherStateError",
]
