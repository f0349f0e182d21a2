"""Worker: claims items from one queue and runs them through the processor."""

import threading
from typing import TYPE_CHECKING, Any

from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from switchyard.core.common.exceptions import ItemNotFoundError
from switchyard.core.common.types import Priority
from switchyard.core.completion import CompletionBridge
from switchyard.core.processing.outcome import Failure, FailureKind, ProcessingOutcome
from switchyard.core.processing.processor import JobProcessor
from switchyard.core.state import WorkerState, WorkerStateMachine
from switchyard.type_defs import ItemStorageData
from switchyard.utils.logging import ContextLogger, resolve_logger

if TYPE_CHECKING:
    from switchyard.adapters.base import QueueAdapter

# Transient queue I/O is retried with jitter; a missing item is not transient
_queue_io_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_random_exponential(multiplier=0.1, min=0.1, max=1),
    retry=retry_if_not_exception_type(ItemNotFoundError),
    reraise=True,
)


class Worker:
    """
    Execution unit bound to exactly one queue.

    Lifecycle:
        STARTING --start()--> BOUND --request_stop()--> DRAINING --> STOPPED

    While BOUND the worker loops: claim one item (blocking at most
    ``claim_timeout_seconds`` so a stop request is noticed), process it,
    then ack or fail it. A stop request never interrupts an item: the item
    in hand is acked or failed before the worker reports STOPPED.

    A stopped worker is never rebound; the pool builds a fresh instance with
    the same id for the new queue.
    """

    DEFAULT_CLAIM_TIMEOUT_SECONDS = 0.5
    CLAIM_ERROR_BACKOFF_SECONDS = 1.0

    def __init__(
        self,
        worker_id: int,
        queue: "QueueAdapter",
        binding: Priority,
        processor: JobProcessor,
        completions: CompletionBridge,
        logger: ContextLogger | None = None,
        claim_timeout_seconds: float = DEFAULT_CLAIM_TIMEOUT_SECONDS,
    ) -> None:
        """
        Initialize worker (does not start its thread).

        Args:
            worker_id: Stable id (1..N) kept across rebinds
            queue: Queue adapter to claim from
            binding: Priority class of ``queue``
            processor: Job processor
            completions: Completion bridge notified on terminal outcomes
            logger: Logger (uses default if None)
            claim_timeout_seconds: Max time one claim blocks

        Raises:
            ValueError: If parameters are invalid
        """
        if worker_id < 1:
            raise ValueError("worker_id must be >= 1")
        if claim_timeout_seconds <= 0:
            raise ValueError("claim_timeout_seconds must be > 0")

        self.worker_id = worker_id
        self.queue = queue
        self.processor = processor
        self.completions = completions
        self.claim_timeout_seconds = claim_timeout_seconds

        self._binding: Priority | None = Priority(binding)
        self._state = WorkerStateMachine(worker_id)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._current_item_id: str | None = None

        self.processed_count = 0
        self.failed_attempts = 0

        self.logger = resolve_logger(logger, self.__class__.__name__).with_context(
            worker_id=worker_id, queue=self._binding.value
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def binding(self) -> Priority | None:
        """Queue this worker serves, or None once stopped (UNBOUND)."""
        return self._binding

    @property
    def state(self) -> WorkerState:
        return self._state.status

    @property
    def current_item_id(self) -> str | None:
        return self._current_item_id

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def get_status(self) -> dict[str, Any]:
        binding = self._binding
        return {
            "worker_id": self.worker_id,
            "binding": binding.value if binding else None,
            "state": self.state.value,
            "current_item_id": self._current_item_id,
            "processed_count": self.processed_count,
            "failed_attempts": self.failed_attempts,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Start the claim loop in a daemon thread (STARTING -> BOUND).

        Raises:
            InvalidWorkerStateError: If the worker was already started or stopped
        """
        self._state.transition(WorkerState.BOUND)
        thread = threading.Thread(
            target=self._run,
            daemon=True,
            name=f"switchyard-worker-{self.worker_id}-{self._binding}",
        )
        try:
            thread.start()
        except Exception:
            self._mark_stopped()
            raise
        self._thread = thread
        self.logger.debug("Worker started")

    def request_stop(self) -> None:
        """
        Stop claiming new items (BOUND -> DRAINING).

        Returns immediately; use ``join`` to wait for the drain.
        """
        self._stop_event.set()
        if self._state.transition_if(WorkerState.BOUND, WorkerState.DRAINING):
            self.logger.debug("Worker draining", current_item_id=self._current_item_id)
        elif self._state.status is WorkerState.STARTING:
            self._mark_stopped()

    def join(self, timeout: float | None = None) -> bool:
        """Wait until STOPPED. Returns False on timeout."""
        return self._state.wait_stopped(timeout=timeout)

    def stop(self, timeout: float | None = None) -> bool:
        """Request stop and wait for the drain."""
        self.request_stop()
        return self.join(timeout=timeout)

    # ------------------------------------------------------------------
    # Claim loop (worker thread)
    # ------------------------------------------------------------------

    def _run(self) -> None:
        try:
            while self.state.can_claim() and not self._stop_event.is_set():
                item = self._claim()
                if item is None:
                    continue
                # An item claimed while a stop was being requested is still ours to finish
                self._handle(item)
        except Exception as e:
            self.logger.error(f"Worker loop crashed: {e}", exc_info=True)
        finally:
            self._mark_stopped()

    def _claim(self) -> ItemStorageData | None:
        try:
            return self.queue.claim(timeout_seconds=self.claim_timeout_seconds)
        except Exception as e:
            self.logger.error("Claim failed", error=str(e), error_type=type(e).__name__)
            self._stop_event.wait(timeout=self.CLAIM_ERROR_BACKOFF_SECONDS)
            return None

    def _handle(self, item: ItemStorageData) -> None:
        """Process one claimed item and drive it to ack or fail."""
        item_id = item["item_id"]
        attempt = int(item.get("attempts_made", 0)) + 1
        item_logger = self.logger.with_context(
            item_id=item_id, item_name=item.get("name"), attempt=attempt
        )
        self._current_item_id = item_id

        try:
            item_logger.info("Processing item")
            outcome = self._process(item, item_logger)

            if outcome.ok:
                self._finish_success(item_id, outcome, item_logger)
            else:
                self._finish_failure(
                    item_id, outcome, attempt, item_logger  # type: ignore[arg-type]
                )
        finally:
            self._current_item_id = None

    def _process(self, item: ItemStorageData, item_logger: ContextLogger) -> ProcessingOutcome:
        try:
            return self.processor.process(item["payload"], item_logger)
        except Exception as e:
            item_logger.error("Processor raised", error=str(e), exc_info=True)
            return Failure(kind=FailureKind.UNEXPECTED_ERROR, detail=f"{type(e).__name__}: {e}")

    def _finish_success(
        self, item_id: str, outcome: ProcessingOutcome, item_logger: ContextLogger
    ) -> None:
        try:
            self._ack_with_retry(item_id, outcome.to_dict())
        except Exception as e:
            # Downstream already accepted it; the caller still gets the result
            item_logger.error("Ack failed after retries", error=str(e), exc_info=True)

        self.processed_count += 1
        item_logger.info("Item completed")
        self.completions.fulfill(item_id, outcome)

    def _finish_failure(
        self, item_id: str, outcome: Failure, attempt: int, item_logger: ContextLogger
    ) -> None:
        self.failed_attempts += 1
        try:
            will_retry = self._fail_with_retry(item_id, outcome.to_dict())
        except Exception as e:
            # Retry state unknown; release the caller with the failure
            item_logger.error(
                "Fail bookkeeping failed after retries", error=str(e), exc_info=True
            )
            will_retry = False

        if will_retry:
            item_logger.warning(
                "Attempt failed, retry scheduled", kind=outcome.kind.value, error=outcome.detail
            )
            return

        item_logger.error(
            "Item failed permanently", kind=outcome.kind.value, error=outcome.detail
        )
        self.completions.fulfill(item_id, outcome.with_attempts(attempt))

    @_queue_io_retry
    def _ack_with_retry(self, item_id: str, result: Any) -> None:
        self.queue.ack(item_id, result)

    @_queue_io_retry
    def _fail_with_retry(self, item_id: str, error: dict[str, Any]) -> bool:
        return self.queue.fail(item_id, error)

    def _mark_stopped(self) -> None:
        """Release the binding and report STOPPED (idempotent)."""
        current = self._state.status
        if current is WorkerState.STOPPED:
            return
        self._binding = None
        self._state.transition(WorkerState.STOPPED)
        self.logger.debug("Worker stopped", previous_state=current.value)

    def __repr__(self) -> str:
        return f"Worker(worker_id={self.worker_id}, binding={self._binding}, state={self.state})"
