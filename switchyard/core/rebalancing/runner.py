"""Periodic task runner on daemon threads."""

import threading
from collections.abc import Callable
from typing import Any

from switchyard.utils.logging import ContextLogger, resolve_logger


class PeriodicRunner:
    """Lightweight periodic task runner using daemon threads.

    Each task runs in its own daemon thread with non-overlapping execution
    (waits for completion before the next interval). A task that raises is
    logged and keeps its schedule.
    """

    def __init__(self, logger: ContextLogger | None = None) -> None:
        self._tasks: list[tuple[Callable[[], Any], float, str]] = []
        self._threads: list[threading.Thread] = []
        self._stop_event = threading.Event()
        self.logger = resolve_logger(logger, self.__class__.__name__)

    def add_task(self, func: Callable[[], Any], interval: float, name: str) -> None:
        """Register a periodic task (must be called before start)."""
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self._tasks.append((func, interval, name))

    def start(self) -> None:
        """Start all registered periodic tasks in daemon threads."""
        self._stop_event.clear()
        for func, interval, name in self._tasks:
            thread = threading.Thread(
                target=self._run_loop,
                args=(func, interval, name),
                daemon=True,
                name=f"switchyard-{name}",
            )
            thread.start()
            self._threads.append(thread)

    def _run_loop(self, func: Callable[[], Any], interval: float, name: str) -> None:
        """Execute func periodically until stop is signaled."""
        while not self._stop_event.wait(timeout=interval):
            try:
                func()
            except Exception as e:
                self.logger.error(f"Periodic task failed: {e}", task=name, exc_info=True)

    def is_running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def shutdown(self, wait: bool = True, timeout: float | None = 5) -> None:
        """Stop all periodic tasks."""
        self._stop_event.set()
        if wait:
            for thread in self._threads:
                thread.join(timeout=timeout)
        self._threads.clear()
        self._tasks.clear()
