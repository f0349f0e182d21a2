"""Custom exceptions for Switchyard."""


class SwitchyardError(Exception):
    """Base exception for dispatcher errors."""

    pass


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(SwitchyardError):
    """Invalid configuration or a worker pool that could not be fully built.

    Raised at startup; the process must not run with a degraded pool.
    """

    def __init__(self, message: str, requested: int | None = None, built: int | None = None):
        self.requested = requested
        self.built = built
        super().__init__(message)


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------


class QueueError(SwitchyardError):
    """Base class for queue adapter errors."""

    pass


class ItemNotFoundError(QueueError):
    """Item does not exist in the queue."""

    def __init__(self, item_id: str, queue_name: str | None = None):
        self.item_id = item_id
        self.queue_name = queue_name
        where = f" in queue '{queue_name}'" if queue_name else ""
        super().__init__(f"Item '{item_id}' not found{where}")


class QueueConnectionError(QueueError):
    """Queue storage substrate is unreachable."""

    pass


# ---------------------------------------------------------------------------
# Workers
# ---------------------------------------------------------------------------


class WorkerStateError(SwitchyardError):
    """Base class for worker lifecycle errors."""

    pass


class InvalidWorkerStateError(WorkerStateError):
    """Requested lifecycle transition is not allowed from the current state."""

    def __init__(self, worker_id: int, current: str, target: str):
        self.worker_id = worker_id
        self.current = current
        self.target = target
        super().__init__(f"Worker {worker_id} cannot transition from '{current}' to '{target}'")


# ---------------------------------------------------------------------------
# Completion bridge
# ---------------------------------------------------------------------------


class CompletionError(SwitchyardError):
    """Base class for completion bridge errors."""

    pass


class CompletionAlreadyRegisteredError(CompletionError):
    """A pending completion already exists for this item."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Completion for item '{item_id}' is already registered")


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class DispatcherStateError(SwitchyardError):
    """Operation not allowed in the dispatcher's current state."""

    pass
