"""Dispatcher: wires queues, worker pool, rebalancer and completion bridge."""

import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from switchyard.core.common.exceptions import ConfigurationError, DispatcherStateError
from switchyard.core.common.types import Priority
from switchyard.core.completion import CompletionBridge
from switchyard.core.items.definition import Item
from switchyard.core.processing.outcome import CompletionOutcome, Failure, FailureKind
from switchyard.core.processing.processor import JobProcessor
from switchyard.core.rebalancing import PeriodicRunner, RebalancePolicy, Rebalancer
from switchyard.core.workers import Worker, WorkerPool
from switchyard.type_defs import ItemStorageData, StalledRecovery
from switchyard.utils.logging import ContextLogger, resolve_logger
from switchyard.utils.retry import BackoffPolicy
from switchyard.utils.time import from_epoch_ms

if TYPE_CHECKING:
    from switchyard.adapters.base import QueueAdapter


class Dispatcher:
    """
    Priority webhook dispatcher.

    Owns the two shared queues, the worker pool, the rebalancer and the
    completion bridge. The web layer holds a reference to one Dispatcher and
    talks only to it.

    Usage:
        >>> high = InMemoryQueueAdapter("HighPriorityQueue")
        >>> low = InMemoryQueueAdapter("LowPriorityQueue")
        >>> dispatcher = Dispatcher(high, low, WebhookProcessor(url))
        >>> dispatcher.start()
        >>> outcome = dispatcher.submit({"a": 1}, Priority.HIGH, timeout_seconds=60)
        >>> dispatcher.stop()
    """

    DEFAULT_WORKER_COUNT = WorkerPool.DEFAULT_SIZE
    MIN_REBALANCE_INTERVAL = 0.05
    MAX_REBALANCE_INTERVAL = 3600
    DEFAULT_STALLED_INTERVAL_SECONDS = 30.0

    def __init__(
        self,
        high_queue: "QueueAdapter",
        low_queue: "QueueAdapter",
        processor: JobProcessor,
        worker_count: int = DEFAULT_WORKER_COUNT,
        rebalance_interval_seconds: float = Rebalancer.DEFAULT_INTERVAL_SECONDS,
        stalled_interval_seconds: float = DEFAULT_STALLED_INTERVAL_SECONDS,
        backoff: BackoffPolicy | None = None,
        initial_binding: Priority = Priority.HIGH,
        claim_timeout_seconds: float = Worker.DEFAULT_CLAIM_TIMEOUT_SECONDS,
        policy: RebalancePolicy | None = None,
        worker_factory: Callable[..., Worker] | None = None,
        logger: ContextLogger | None = None,
    ) -> None:
        """
        Initialize dispatcher (nothing runs until ``start``).

        Args:
            high_queue: HIGH priority queue adapter
            low_queue: LOW priority queue adapter
            processor: Job processor shared by all workers
            worker_count: Fixed pool size (default: 5)
            rebalance_interval_seconds: Rebalancer tick period (default: 3)
            stalled_interval_seconds: Period of stalled-item recovery (default: 30)
            backoff: Default retry policy for submitted items
            initial_binding: Binding of every worker before the first tick
            claim_timeout_seconds: Max time one worker claim blocks
            policy: Rebalance policy (default: RebalancePolicy)
            worker_factory: Worker constructor override
            logger: Logger (uses default if None)

        Raises:
            ValueError: If parameters are invalid
        """
        if high_queue is low_queue:
            raise ValueError("high_queue and low_queue must be distinct queues")
        if worker_count < 1:
            raise ValueError("worker_count must be >= 1")
        if rebalance_interval_seconds < self.MIN_REBALANCE_INTERVAL:
            raise ValueError(
                f"rebalance_interval_seconds must be >= {self.MIN_REBALANCE_INTERVAL}"
            )
        if rebalance_interval_seconds > self.MAX_REBALANCE_INTERVAL:
            raise ValueError(
                f"rebalance_interval_seconds should not exceed {self.MAX_REBALANCE_INTERVAL}"
            )
        if stalled_interval_seconds <= 0:
            raise ValueError("stalled_interval_seconds must be > 0")

        self.high_queue = high_queue
        self.low_queue = low_queue
        self.processor = processor
        self.worker_count = worker_count
        self.rebalance_interval_seconds = rebalance_interval_seconds
        self.stalled_interval_seconds = stalled_interval_seconds
        self.backoff = backoff or BackoffPolicy()
        self.initial_binding = Priority(initial_binding)
        self.claim_timeout_seconds = claim_timeout_seconds
        self.policy = policy or RebalancePolicy()
        self._worker_factory = worker_factory

        self.logger = resolve_logger(logger, self.__class__.__name__)
        self.completions = CompletionBridge(logger=self.logger)

        self.pool: WorkerPool | None = None
        self.rebalancer: Rebalancer | None = None
        self._maintenance: PeriodicRunner | None = None
        self._running = False
        self._lifecycle_lock = threading.Lock()

    @property
    def queues(self) -> dict[Priority, "QueueAdapter"]:
        return {Priority.HIGH: self.high_queue, Priority.LOW: self.low_queue}

    def queue_for(self, priority: Priority | str) -> "QueueAdapter":
        return self.queues[Priority(priority)]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Build the pool, then start the rebalancer (its first tick runs now).

        Raises:
            DispatcherStateError: If already running
            ConfigurationError: If a queue is unreachable or the pool could
                not be built to full size
        """
        with self._lifecycle_lock:
            if self._running:
                raise DispatcherStateError(
                    "Dispatcher is already running. Call dispatcher.stop() first to restart."
                )

            for queue in (self.high_queue, self.low_queue):
                try:
                    queue.ping()
                except Exception as e:
                    raise ConfigurationError(f"Queue '{queue.name}' is unreachable: {e}") from e

            self.logger.info(
                "Starting dispatcher",
                worker_count=self.worker_count,
                initial_binding=self.initial_binding.value,
            )

            # Expired claims of a previous process go back before workers claim
            try:
                self.recover_stalled()
            except Exception as e:
                self.logger.error("Stalled item recovery failed", error=str(e), exc_info=True)

            pool_kwargs: dict[str, Any] = {
                "logger": self.logger,
                "claim_timeout_seconds": self.claim_timeout_seconds,
            }
            if self._worker_factory is not None:
                pool_kwargs["worker_factory"] = self._worker_factory

            self.pool = WorkerPool.create_initial(
                self.worker_count,
                self.initial_binding,
                queues=self.queues,
                processor=self.processor,
                completions=self.completions,
                **pool_kwargs,
            )
            self.rebalancer = Rebalancer(
                high_queue=self.high_queue,
                pool=self.pool,
                policy=self.policy,
                interval_seconds=self.rebalance_interval_seconds,
                logger=self.logger,
            )
            self.rebalancer.start()

            self._maintenance = PeriodicRunner(logger=self.logger)
            self._maintenance.add_task(
                self.recover_stalled, self.stalled_interval_seconds, "stalled-recovery"
            )
            self._maintenance.start()
            self._running = True

    def stop(self, timeout: float | None = None) -> dict[str, Any]:
        """
        Stop the rebalancer, then drain and stop every worker.

        Args:
            timeout: Max wait per worker drain (None waits for in-flight items)

        Returns:
            Dictionary with shutdown status:
            - was_running: Whether the dispatcher was running
            - workers_stopped: Whether every worker reached STOPPED
        """
        with self._lifecycle_lock:
            if not self._running:
                return {"was_running": False, "workers_stopped": True}

            self.logger.info("Stopping dispatcher")
            if self._maintenance is not None:
                self._maintenance.shutdown(wait=True)
                self._maintenance = None
            if self.rebalancer is not None:
                self.rebalancer.stop()
            workers_stopped = self.pool.shutdown(timeout=timeout) if self.pool else True
            self.processor.close()
            self._running = False

        return {"was_running": True, "workers_stopped": workers_stopped}

    def is_running(self) -> bool:
        return self._running

    def __enter__(self) -> "Dispatcher":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(
        self,
        payload: Any,
        priority: Priority | str,
        timeout_seconds: float | None = None,
        name: str | None = None,
        backoff: BackoffPolicy | None = None,
    ) -> CompletionOutcome:
        """
        Enqueue an item and block until it is terminal or the wait times out.

        The completion is registered before the item is visible to workers.

        Args:
            payload: JSON-serializable payload
            priority: HIGH or LOW
            timeout_seconds: Max wait (None waits forever)
            name: Job name (default: "<priority>-priority-webhook")
            backoff: Retry policy override

        Returns:
            Success, Failure (attempts exhausted), or CompletionTimeout

        Raises:
            DispatcherStateError: If the dispatcher is not running
        """
        if not self._running:
            raise DispatcherStateError("Dispatcher is not running. Call dispatcher.start() first.")

        item = Item(payload, priority, name=name, backoff=backoff or self.backoff)
        token = self.completions.register(item.item_id)
        try:
            self.queue_for(item.priority).enqueue(item)
        except Exception:
            self.completions.discard(token)
            raise

        self.logger.info(
            "Item enqueued, waiting for completion",
            item_id=item.item_id,
            item_name=item.name,
            priority=item.priority.value,
        )
        return self.completions.wait(token, timeout_seconds)

    def submit_detached(
        self,
        payload: Any,
        priority: Priority | str,
        name: str | None = None,
        backoff: BackoffPolicy | None = None,
    ) -> str:
        """
        Enqueue an item without waiting for it (fire-and-forget).

        Returns:
            The item id
        """
        item = Item(payload, priority, name=name, backoff=backoff or self.backoff)
        item_id = self.queue_for(item.priority).enqueue(item)
        self.logger.info(
            "Item enqueued (detached)",
            item_id=item_id,
            item_name=item.name,
            priority=item.priority.value,
        )
        return item_id

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def recover_stalled(self) -> dict[str, StalledRecovery]:
        """
        Run stalled-item recovery on both queues.

        Waiters in this process whose item was failed by recovery receive
        an UNEXPECTED_ERROR failure.

        Returns:
            Recovery result per priority value
        """
        results: dict[str, StalledRecovery] = {}
        for priority, queue in self.queues.items():
            recovered = queue.recover_stalled()
            results[priority.value] = recovered
            if not (recovered["requeued"] or recovered["failed"]):
                continue

            self.logger.warning(
                "Recovered stalled items",
                queue=queue.name,
                requeued=recovered["requeued"],
                failed=recovered["failed"],
            )
            for item_id in recovered["failed"]:
                item = queue.get_item(item_id)
                self.completions.fulfill(
                    item_id,
                    Failure(
                        kind=FailureKind.UNEXPECTED_ERROR,
                        detail="Item stalled: its worker stopped without finishing it",
                        attempts_made=item.get("attempts_made", 0) if item else 0,
                    ),
                )
        return results

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    def get_item(self, priority: Priority | str, item_id: str) -> ItemStorageData | None:
        return self.queue_for(priority).get_item(item_id)

    def get_status(self, recent: int = 10) -> dict[str, Any]:
        """
        Read-only snapshot for monitoring.

        Returns:
            Dictionary with per-queue depth/counts/recent items, pool workers,
            rebalancer stats and pending completion count
        """
        queues = {}
        for priority, queue in self.queues.items():
            queues[priority.value] = {
                "name": queue.name,
                "depth": queue.depth(),
                "counts": queue.get_counts(),
                "recent_items": [
                    _summarize_item(item) for item in queue.list_items(limit=recent)
                ],
            }

        return {
            "running": self._running,
            "queues": queues,
            "pool": self.pool.get_status() if self.pool else None,
            "rebalancer": self.rebalancer.get_status() if self.rebalancer else None,
            "pending_completions": self.completions.pending_count(),
        }


def _summarize_item(item: ItemStorageData) -> dict[str, Any]:
    return {
        "item_id": item["item_id"],
        "name": item.get("name"),
        "status": item.get("status"),
        "attempts_made": item.get("attempts_made", 0),
        "eligible_at": from_epoch_ms(item.get("eligible_at")),
        "created_at": item.get("created_at"),
        "updated_at": item.get("updated_at"),
        "finished_at": item.get("finished_at"),
        "last_error": item.get("last_error"),
    }
