"""Workers and the worker pool."""

from switchyard.core.workers.pool import WorkerPool
from switchyard.core.workers.worker import Worker

__all__ = ["Worker", "WorkerPool"]
