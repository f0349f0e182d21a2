"""Common test fixtures and utilities."""

import threading
import time
from collections import deque
from collections.abc import Callable
from typing import Any
from unittest.mock import Mock

import pytest

from switchyard import Dispatcher, InMemoryQueueAdapter, JobProcessor, Success
from switchyard.core.common.types import ItemStatus, Priority
from switchyard.utils.retry import BackoffPolicy


def wait_for(
    condition: Callable[[], bool],
    timeout: float = 10.0,
    interval: float = 0.05,
    error_message: str | None = None,
) -> bool:
    """
    Wait until condition is True, polling at interval (eventually pattern).

    Args:
        condition: Function that returns bool
        timeout: Maximum wait time in seconds
        interval: Polling interval in seconds
        error_message: Custom error message if timeout

    Returns:
        True if condition met

    Raises:
        AssertionError: If timeout exceeded

    Example:
        wait_for(lambda: pool.is_converged(Priority.LOW), timeout=5)
    """
    start = time.time()
    last_exception = None

    while time.time() - start < timeout:
        try:
            if condition():
                return True
        except Exception as e:
            # Store exception to report if timeout
            last_exception = e
        time.sleep(interval)

    elapsed = time.time() - start
    if error_message is None:
        error_message = f"Condition not met within {timeout}s (elapsed: {elapsed:.2f}s)"

    if last_exception:
        error_message += f"\nLast exception: {last_exception}"

    raise AssertionError(error_message)


def eventually(
    assertion_fn: Callable[[], None],
    timeout: float = 10.0,
    interval: float = 0.05,
) -> None:
    """
    Repeatedly call assertion_fn until it passes (no exception) or timeout.

    Example:
        def check():
            assert queue.get_counts()["completed"] == 3

        eventually(check, timeout=5)
    """
    start = time.time()
    last_error = None

    while time.time() - start < timeout:
        try:
            assertion_fn()
            return
        except AssertionError as e:
            last_error = e
            time.sleep(interval)

    elapsed = time.time() - start
    if last_error:
        raise AssertionError(
            f"Assertions never passed within {timeout}s (elapsed: {elapsed:.2f}s)\n"
            f"Last assertion error: {last_error}"
        )
    raise AssertionError(f"No assertions passed within {timeout}s")


class ScriptedProcessor(JobProcessor):
    """
    Processor that replays scripted outcomes, then echoes the payload.

    Script entries may be an outcome, an exception to raise, or a callable
    taking the payload. ``gate`` (if set) blocks every call until released,
    which lets tests hold an item in flight.
    """

    def __init__(
        self,
        outcomes: list[Any] | None = None,
        gate: threading.Event | None = None,
        delay: float = 0.0,
    ) -> None:
        self._outcomes: deque[Any] = deque(outcomes or [])
        self.gate = gate
        self.delay = delay
        self.calls: list[Any] = []
        self.started = threading.Event()
        self.closed = False
        self._lock = threading.Lock()

    def process(self, payload, logger=None):
        with self._lock:
            self.calls.append(payload)
            outcome = self._outcomes.popleft() if self._outcomes else None
        self.started.set()

        if self.gate is not None:
            self.gate.wait(timeout=10)
        if self.delay:
            time.sleep(self.delay)

        if outcome is None:
            return Success(status_code=200, body={"echo": payload})
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(payload)
        return outcome

    def close(self):
        self.closed = True

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.calls)


# Fast retries for tests: 3 attempts, 20 ms then 40 ms
FAST_BACKOFF = BackoffPolicy(max_attempts=3, delay_ms=20)


@pytest.fixture
def high_queue():
    return InMemoryQueueAdapter("HighPriorityQueue")


@pytest.fixture
def low_queue():
    return InMemoryQueueAdapter("LowPriorityQueue")


@pytest.fixture
def processor():
    return ScriptedProcessor()


@pytest.fixture
def make_dispatcher(high_queue, low_queue):
    """
    Build dispatchers with fast timers; every one built is stopped on teardown.

    Does NOT start the dispatcher.
    """
    created: list[Dispatcher] = []

    def factory(processor: JobProcessor, **kwargs: Any) -> Dispatcher:
        kwargs.setdefault("worker_count", 5)
        kwargs.setdefault("rebalance_interval_seconds", 0.1)
        kwargs.setdefault("claim_timeout_seconds", 0.05)
        kwargs.setdefault("backoff", FAST_BACKOFF)
        dispatcher = Dispatcher(high_queue, low_queue, processor, **kwargs)
        created.append(dispatcher)
        return dispatcher

    yield factory

    for dispatcher in created:
        dispatcher.stop(timeout=5)


@pytest.fixture
def mock_queue():
    """Create a mock queue adapter with an empty queue."""
    queue = Mock()
    queue.name = "MockQueue"
    queue.enqueue = Mock(side_effect=lambda item: item.item_id)
    queue.depth = Mock(return_value=0)
    queue.claim = Mock(return_value=None)
    queue.ack = Mock()
    queue.fail = Mock(return_value=True)
    queue.get_item = Mock(return_value=None)
    queue.get_counts = Mock(
        return_value={"waiting": 0, "delayed": 0, "active": 0, "completed": 0, "failed": 0}
    )
    queue.list_items = Mock(return_value=[])
    queue.ping = Mock(return_value=True)
    queue.recover_stalled = Mock(return_value={"requeued": [], "failed": []})
    return queue


@pytest.fixture
def mock_completions():
    """Create a mock completion bridge."""
    completions = Mock()
    completions.fulfill = Mock(return_value=True)
    completions.pending_count = Mock(return_value=0)
    return completions


@pytest.fixture
def mock_logger():
    """Create a mock logger."""
    logger = Mock()
    logger.info = Mock()
    logger.warning = Mock()
    logger.error = Mock()
    logger.debug = Mock()
    logger.with_context = Mock(return_value=logger)
    return logger


@pytest.fixture
def sample_item_data():
    """Create sample claimed item data for testing."""
    return {
        "item_id": "item-1",
        "name": "high-priority-webhook",
        "priority": Priority.HIGH.value,
        "payload": {"a": 1},
        "status": ItemStatus.ACTIVE.value,
        "attempts_made": 0,
        "backoff": {"max_attempts": 3, "delay_ms": 2000, "multiplier": 2.0},
        "created_at": "2024-01-01T12:00:00+00:00",
        "updated_at": "2024-01-01T12:00:00+00:00",
        "eligible_at": 1704110400000,
    }
