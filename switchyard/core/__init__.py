"""Core dispatcher components."""

from switchyard.core.common import (
    CompletionAlreadyRegisteredError,
    CompletionError,
    ConfigurationError,
    DispatcherStateError,
    InvalidWorkerStateError,
    ItemNotFoundError,
    ItemStatus,
    Priority,
    QueueConnectionError,
    QueueError,
    SwitchyardError,
    WorkerStateError,
)
from switchyard.core.completion import CompletionBridge, CompletionToken
from switchyard.core.dispatcher import Dispatcher
from switchyard.core.items import Item
from switchyard.core.processing import (
    CompletionOutcome,
    CompletionTimeout,
    Failure,
    FailureKind,
    JobProcessor,
    ProcessingOutcome,
    Success,
    WebhookProcessor,
)
from switchyard.core.rebalancing import PeriodicRunner, RebalancePolicy, Rebalancer
from switchyard.core.state import WorkerState
from switchyard.core.workers import Worker, WorkerPool

__all__ = [
    # Common Types
    "Priority",
    "ItemStatus",
    "WorkerState",
    # Exceptions
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
    # Items
    "Item",
    # Processing
    "JobProcessor",
    "WebhookProcessor",
    "Success",
    "Failure",
    "FailureKind",
    "CompletionTimeout",
    "ProcessingOutcome",
    "CompletionOutcome",
    # Completion
    "CompletionBridge",
    "CompletionToken",
    # Workers
    "Worker",
    "WorkerPool",
    # Rebalancing
    "RebalancePolicy",
    "Rebalancer",
    "PeriodicRunner",
    # Dispatcher
    "Dispatcher",
]
