"""Rebalancer: periodically point the worker pool at the queue that needs it."""

from typing import TYPE_CHECKING, Any

from switchyard.core.common.types import Priority
from switchyard.core.rebalancing.policy import RebalancePolicy
from switchyard.core.rebalancing.runner import PeriodicRunner
from switchyard.core.workers.pool import WorkerPool
from switchyard.utils.logging import ContextLogger, resolve_logger
from switchyard.utils.time import utc_now

if TYPE_CHECKING:
    from switchyard.adapters.base import QueueAdapter


class Rebalancer:
    """
    Timer-driven rebinding of the whole pool.

    Every ``interval_seconds`` the rebalancer reads the HIGH queue depth,
    asks the policy for a target, and calls ``pool.rebind_all(target)``,
    which blocks the tick until affected workers have drained. One tick runs
    synchronously inside ``start()`` so the initial binding is checked
    against real depth right away.

    A tick that fails is logged and counted; it never stops the timer and
    leaves the current binding as it was.
    """

    DEFAULT_INTERVAL_SECONDS = 3.0

    def __init__(
        self,
        high_queue: "QueueAdapter",
        pool: WorkerPool,
        policy: RebalancePolicy | None = None,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        logger: ContextLogger | None = None,
    ) -> None:
        """
        Initialize rebalancer.

        Args:
            high_queue: HIGH priority queue (the only depth that is read)
            pool: Worker pool to drive
            policy: Binding policy (default: RebalancePolicy)
            interval_seconds: Tick period
            logger: Logger (uses default if None)

        Raises:
            ValueError: If interval_seconds is not positive
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        self.high_queue = high_queue
        self.pool = pool
        self.policy = policy or RebalancePolicy()
        self.interval_seconds = interval_seconds
        self.logger = resolve_logger(logger, self.__class__.__name__)

        self.last_target: Priority | None = None
        self.last_depth: int | None = None
        self.last_tick_at: str | None = None
        self.tick_count = 0
        self.error_count = 0

        self._runner: PeriodicRunner | None = None

    def tick(self) -> Priority | None:
        """
        Run one rebalance decision.

        Returns:
            The target binding, or None if the tick failed
        """
        try:
            depth = self.high_queue.depth()
            target = self.policy.choose_binding(depth)
            rebound = self.pool.rebind_all(target)
        except Exception as e:
            self.error_count += 1
            self.logger.error("Rebalance tick failed", error=str(e), exc_info=True)
            return None

        changed = target is not self.last_target
        self.last_depth = depth
        self.last_target = target
        self.last_tick_at = utc_now().isoformat()
        self.tick_count += 1

        if rebound or changed:
            self.logger.info(
                "Pool rebalanced", high_depth=depth, target=target.value, rebound=rebound
            )
        else:
            self.logger.debug("Pool already converged", high_depth=depth, target=target.value)
        return target

    def start(self) -> None:
        """
        Run one tick now, then keep ticking in a daemon thread.

        Raises:
            RuntimeError: If already running
        """
        if self._runner is not None:
            raise RuntimeError("Rebalancer is already running")

        self.tick()

        self._runner = PeriodicRunner(logger=self.logger)
        self._runner.add_task(self.tick, self.interval_seconds, "rebalancer")
        self._runner.start()
        self.logger.info("Rebalancer started", interval_seconds=self.interval_seconds)

    def stop(self) -> None:
        """Stop the timer, waiting for a tick in progress."""
        if self._runner is None:
            return
        # A tick may be draining workers; its rebind is bounded by the processor timeout
        self._runner.shutdown(wait=True, timeout=None)
        self._runner = None
        self.logger.info("Rebalancer stopped")

    def is_running(self) -> bool:
        return self._runner is not None

    def get_status(self) -> dict[str, Any]:
        return {
            "running": self.is_running(),
            "interval_seconds": self.interval_seconds,
            "last_target": self.last_target.value if self.last_target else None,
            "last_high_depth": self.last_depth,
            "last_tick_at": self.last_tick_at,
            "tick_count": self.tick_count,
            "error_count": self.error_count,
        }
