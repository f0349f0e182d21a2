"""Fixed-size worker pool with drain-and-rebind."""

import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Any

from switchyard.core.common.exceptions import ConfigurationError
from switchyard.core.common.types import Priority
from switchyard.core.completion import CompletionBridge
from switchyard.core.processing.processor import JobProcessor
from switchyard.core.state import WorkerState
from switchyard.core.workers.worker import Worker
from switchyard.utils.logging import ContextLogger, resolve_logger

if TYPE_CHECKING:
    from switchyard.adapters.base import QueueAdapter

WorkerFactory = Callable[..., Worker]


class WorkerPool:
    """
    Owns N workers and their queue bindings.

    Invariants:
    - The number of slots is fixed at construction and never changes.
    - Rebinding replaces the worker object in a slot; the slot keeps its id.
    - ``rebind_all`` and ``shutdown`` serialize on one lock, so a worker is
      never drained by one while the other rebuilds it.
    - Reads of the worker list take a separate short lock and never wait on
      a drain.

    Usage:
        >>> pool = WorkerPool.create_initial(
        ...     5, Priority.HIGH, queues=queues, processor=processor, completions=bridge
        ... )
        >>> pool.rebind_all(Priority.LOW)   # drains and rebinds all 5
        >>> pool.shutdown()
    """

    DEFAULT_SIZE = 5

    def __init__(
        self,
        queues: dict[Priority, "QueueAdapter"],
        processor: JobProcessor,
        completions: CompletionBridge,
        logger: ContextLogger | None = None,
        claim_timeout_seconds: float = Worker.DEFAULT_CLAIM_TIMEOUT_SECONDS,
        worker_factory: WorkerFactory | None = None,
    ) -> None:
        """
        Initialize an empty pool; use ``create_initial`` to build one with workers.

        Args:
            queues: Queue adapter per priority (both HIGH and LOW required)
            processor: Job processor shared by all workers
            completions: Completion bridge shared by all workers
            logger: Logger (uses default if None)
            claim_timeout_seconds: Max time one worker claim blocks
            worker_factory: Worker constructor (tests inject failing factories)

        Raises:
            ConfigurationError: If a priority has no queue
        """
        missing = [p.value for p in Priority if p not in queues]
        if missing:
            raise ConfigurationError(f"Missing queue for priority: {', '.join(missing)}")

        self.queues = dict(queues)
        self.processor = processor
        self.completions = completions
        self.claim_timeout_seconds = claim_timeout_seconds
        self.logger = resolve_logger(logger, self.__class__.__name__)
        self._worker_factory: WorkerFactory = worker_factory or Worker

        self._workers: list[Worker] = []
        self._lock = threading.RLock()
        self._workers_lock = threading.Lock()
        self._closing = threading.Event()
        self._shut_down = False

    @classmethod
    def create_initial(
        cls,
        n: int,
        initial_binding: Priority,
        queues: dict[Priority, "QueueAdapter"],
        processor: JobProcessor,
        completions: CompletionBridge,
        **kwargs: Any,
    ) -> "WorkerPool":
        """
        Build and start exactly ``n`` workers bound to ``initial_binding``.

        Raises:
            ConfigurationError: If fewer than ``n`` workers could be started;
                the ones that did start are stopped first
        """
        pool = cls(queues=queues, processor=processor, completions=completions, **kwargs)
        pool._populate(n, Priority(initial_binding))
        return pool

    def _populate(self, n: int, binding: Priority) -> None:
        if n < 1:
            raise ConfigurationError(
                f"Worker pool size must be >= 1, got {n}", requested=n, built=0
            )

        built: list[Worker] = []
        try:
            for worker_id in range(1, n + 1):
                worker = self._build_worker(worker_id, binding)
                worker.start()
                built.append(worker)
        except Exception as e:
            self.logger.error(
                "Worker pool construction failed", requested=n, built=len(built), error=str(e)
            )
            self._stop_workers(built)
            raise ConfigurationError(
                f"Worker pool needs {n} workers but only {len(built)} could be started: {e}",
                requested=n,
                built=len(built),
            ) from e

        with self._workers_lock:
            self._workers = built

        self.logger.info("Worker pool created", size=n, binding=binding.value)

    def _build_worker(self, worker_id: int, binding: Priority) -> Worker:
        return self._worker_factory(
            worker_id=worker_id,
            queue=self.queues[binding],
            binding=binding,
            processor=self.processor,
            completions=self.completions,
            logger=self.logger,
            claim_timeout_seconds=self.claim_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Rebinding
    # ------------------------------------------------------------------

    def rebind_all(self, target: Priority) -> int:
        """
        Converge every worker onto ``target``.

        Workers already bound to ``target`` are left alone. The others are
        asked to stop together; each slot then drains and is replaced on its
        own task, so a worker that is idle takes up ``target`` right away
        while a busy one is still finishing its item. Returns after every
        slot has been handled.

        Args:
            target: Queue priority every worker should serve

        Returns:
            Number of workers rebound (0 if already converged or shut down)

        Raises:
            ConfigurationError: If a replacement could not be started; its slot
                stays unbound and the next call retries it
        """
        target = Priority(target)

        with self._lock:
            if self._shut_down or self._closing.is_set():
                return 0

            stale = [
                (index, worker)
                for index, worker in enumerate(self.workers)
                if worker.binding is not target or worker.state is WorkerState.STOPPED
            ]
            if not stale:
                return 0

            self.logger.info(
                "Rebinding workers",
                target=target.value,
                worker_ids=[worker.worker_id for _, worker in stale],
            )

            for _, worker in stale:
                worker.request_stop()

            rebound = 0
            failed: list[int] = []
            with ThreadPoolExecutor(
                max_workers=len(stale), thread_name_prefix="switchyard-rebind"
            ) as executor:
                futures = {
                    executor.submit(self._drain_and_replace, index, worker, target): worker
                    for index, worker in stale
                }
                for future in as_completed(futures):
                    old = futures[future]
                    try:
                        if future.result():
                            rebound += 1
                    except Exception as e:
                        self.logger.error(
                            "Failed to rebind worker",
                            worker_id=old.worker_id,
                            target=target.value,
                            error=str(e),
                            exc_info=True,
                        )
                        failed.append(old.worker_id)

            if failed:
                raise ConfigurationError(
                    f"Failed to rebind workers {sorted(failed)} to {target.value}",
                    requested=len(stale),
                    built=rebound,
                )

            self.logger.info("Workers rebound", target=target.value, count=rebound)
            return rebound

    def _drain_and_replace(self, index: int, old: Worker, target: Priority) -> bool:
        """Wait for one slot to drain, then start its replacement bound to ``target``."""
        old.join()
        if self._closing.is_set():
            # Shutdown began while draining; leave the slot stopped
            return False

        replacement = self._build_worker(old.worker_id, target)
        replacement.start()
        with self._workers_lock:
            self._workers[index] = replacement
        return True

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def shutdown(self, timeout: float | None = None) -> bool:
        """
        Drain and stop every worker. Idempotent.

        A rebind in progress finishes draining but starts no replacements
        once shutdown has begun.

        Args:
            timeout: Max wait per worker drain (None waits for in-flight items)

        Returns:
            True if every worker reached STOPPED
        """
        self._closing.set()

        with self._lock:
            workers = list(self.workers)
            if self._shut_down:
                return all(w.state is WorkerState.STOPPED for w in workers)

            self.logger.info("Shutting down worker pool", size=len(workers))
            all_stopped = self._stop_workers(workers, timeout=timeout)
            self._shut_down = True

        if not all_stopped:
            self.logger.warning("Some workers did not finish draining", timeout=timeout)
        return all_stopped

    def _stop_workers(self, workers: list[Worker], timeout: float | None = None) -> bool:
        for worker in workers:
            worker.request_stop()
        return all([worker.join(timeout=timeout) for worker in workers])

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        with self._workers_lock:
            return len(self._workers)

    @property
    def workers(self) -> tuple[Worker, ...]:
        with self._workers_lock:
            return tuple(self._workers)

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    def bindings(self) -> dict[int, Priority | None]:
        """Current binding per worker id (None while unbound)."""
        return {w.worker_id: w.binding for w in self.workers}

    def states(self) -> dict[int, WorkerState]:
        return {w.worker_id: w.state for w in self.workers}

    def is_converged(self, target: Priority) -> bool:
        """Check whether every worker is bound to ``target``."""
        return all(binding is target for binding in self.bindings().values())

    def get_status(self) -> dict[str, Any]:
        workers = [w.get_status() for w in self.workers]
        return {
            "size": len(workers),
            "shut_down": self._shut_down,
            "workers": workers,
        }
