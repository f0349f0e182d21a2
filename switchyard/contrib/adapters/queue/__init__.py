"""Queue adapters backed by external services."""

from switchyard.contrib.adapters.queue.redis import RedisQueueAdapter

__all__ = ["RedisQueueAdapter"]
