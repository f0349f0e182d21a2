"""Adapter pattern implementations for queue storage."""

from switchyard.adapters.base import QueueAdapter

__all__ = [
    "QueueAdapter",
]
