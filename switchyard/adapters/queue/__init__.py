"""Built-in queue adapters."""

from switchyard.adapters.queue.memory import InMemoryQueueAdapter

__all__ = ["InMemoryQueueAdapter"]
