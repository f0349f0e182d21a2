"""Completion bridge: block a submitting caller until its item is terminal."""

import threading
from collections import deque
from typing import Any

from switchyard.core.common.exceptions import CompletionAlreadyRegisteredError, CompletionError
from switchyard.core.processing.outcome import (
    CompletionOutcome,
    CompletionTimeout,
    ProcessingOutcome,
)
from switchyard.utils.logging import ContextLogger, resolve_logger


class CompletionToken:
    """Single-use handle returned by ``CompletionBridge.register``."""

    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        self._event = threading.Event()
        self._outcome: ProcessingOutcome | None = None
        self._consumed = False

    @property
    def fulfilled(self) -> bool:
        return self._event.is_set()

    def __repr__(self) -> str:
        return f"CompletionToken(item_id={self.item_id!r}, fulfilled={self.fulfilled})"


class CompletionBridge:
    """
    Maps item ids to single-use notification slots.

    Lifecycle of one entry:
    1. ``register`` before the item is enqueued
    2. ``fulfill`` once, by the worker that drives the item to a terminal state
    3. ``wait`` once, by the submitting caller; the entry is removed whether
       the outcome arrived or the wait timed out

    Fulfilling an id that was never registered (fire-and-forget submissions),
    was already fulfilled, or whose caller gave up is a no-op.
    """

    # Remember this many timed-out ids so late outcomes can be logged as such
    ABANDONED_HISTORY = 1000

    def __init__(self, logger: ContextLogger | None = None) -> None:
        self.logger = resolve_logger(logger, self.__class__.__name__)
        self._pending: dict[str, CompletionToken] = {}
        self._abandoned: deque[str] = deque(maxlen=self.ABANDONED_HISTORY)
        self._lock = threading.Lock()

    def register(self, item_id: str) -> CompletionToken:
        """
        Create a pending completion for ``item_id``.

        Raises:
            CompletionAlreadyRegisteredError: If one is already pending
        """
        token = CompletionToken(item_id)
        with self._lock:
            if item_id in self._pending:
                raise CompletionAlreadyRegisteredError(item_id)
            self._pending[item_id] = token
        return token

    def wait(
        self, token: CompletionToken, timeout_seconds: float | None = None
    ) -> CompletionOutcome:
        """
        Block until the item's outcome arrives or the timeout elapses.

        Args:
            token: Token from ``register``
            timeout_seconds: Maximum wait (None waits forever)

        Returns:
            The item's terminal outcome, or CompletionTimeout

        Raises:
            CompletionError: If the token was already waited on
        """
        if token._consumed:
            raise CompletionError(f"Completion for item '{token.item_id}' was already consumed")

        token._event.wait(timeout=timeout_seconds)

        with self._lock:
            token._consumed = True
            if self._pending.get(token.item_id) is token:
                del self._pending[token.item_id]
            outcome = token._outcome
            if outcome is None:
                self._abandoned.append(token.item_id)

        if outcome is None:
            self.logger.warning(
                "Caller stopped waiting; item keeps processing",
                item_id=token.item_id,
                timeout_seconds=timeout_seconds,
            )
            return CompletionTimeout(item_id=token.item_id, timeout_seconds=timeout_seconds or 0.0)

        return outcome

    def fulfill(self, item_id: str, outcome: ProcessingOutcome) -> bool:
        """
        Deliver the terminal outcome for ``item_id``.

        Returns:
            True if a waiting caller received it, False if it was a no-op
        """
        with self._lock:
            token = self._pending.get(item_id)
            if token is None or token.fulfilled:
                late = item_id in self._abandoned
            else:
                token._outcome = outcome
                token._event.set()
                return True

        if late:
            self.logger.info(
                "Outcome arrived after caller timed out",
                item_id=item_id,
                success=outcome.ok,
                outcome=_summarize(outcome),
            )
        else:
            self.logger.debug("No pending completion for item", item_id=item_id)
        return False

    def discard(self, token: CompletionToken) -> None:
        """Drop a registration whose item never made it into a queue."""
        with self._lock:
            token._consumed = True
            if self._pending.get(token.item_id) is token:
                del self._pending[token.item_id]

    def is_pending(self, item_id: str) -> bool:
        with self._lock:
            return item_id in self._pending

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)


def _summarize(outcome: ProcessingOutcome) -> dict[str, Any]:
    data = outcome.to_dict()
    data.pop("data", None)
    data.pop("body", None)
    return data
