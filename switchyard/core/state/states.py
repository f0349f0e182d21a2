"""Worker state pattern implementation."""

import threading
from abc import ABC, abstractmethod

from switchyard.core.common.exceptions import InvalidWorkerStateError
from switchyard.core.state.enums import WorkerState


class LifecycleState(ABC):
    """Abstract base class for worker lifecycle states."""

    @abstractmethod
    def get_status(self) -> WorkerState:
        """Get the current status."""
        pass

    @abstractmethod
    def allowed_transitions(self) -> frozenset[WorkerState]:
        """States reachable from this one."""
        pass

    def can_transition_to(self, target: WorkerState) -> bool:
        return target in self.allowed_transitions()


class StartingState(LifecycleState):
    """Worker is constructed and bound to its queue, thread not started."""

    def get_status(self) -> WorkerState:
        return WorkerState.STARTING

    def allowed_transitions(self) -> frozenset[WorkerState]:
        # STOPPED: stop requested before the thread ever ran
        return frozenset({WorkerState.BOUND, WorkerState.STOPPED})


class BoundState(LifecycleState):
    """Worker is claiming and processing items."""

    def get_status(self) -> WorkerState:
        return WorkerState.BOUND

    def allowed_transitions(self) -> frozenset[WorkerState]:
        # STOPPED: claim loop crashed before a stop was requested
        return frozenset({WorkerState.DRAINING, WorkerState.STOPPED})


class DrainingState(LifecycleState):
    """Worker finishes its in-flight item and issues no new claims."""

    def get_status(self) -> WorkerState:
        return WorkerState.DRAINING

    def allowed_transitions(self) -> frozenset[WorkerState]:
        return frozenset({WorkerState.STOPPED})


class StoppedState(LifecycleState):
    """Terminal. A new binding means a new Worker instance."""

    def get_status(self) -> WorkerState:
        return WorkerState.STOPPED

    def allowed_transitions(self) -> frozenset[WorkerState]:
        return frozenset()


class StateFactory:
    """Factory for creating state instances."""

    _states: dict[WorkerState, LifecycleState] = {
        WorkerState.STARTING: StartingState(),
        WorkerState.BOUND: BoundState(),
        WorkerState.DRAINING: DrainingState(),
        WorkerState.STOPPED: StoppedState(),
    }

    @classmethod
    def get_state(cls, status: WorkerState | str) -> LifecycleState:
        """
        Get state instance for given status.

        Args:
            status: Worker state (enum or string)

        Returns:
            LifecycleState instance

        Raises:
            ValueError: If status is invalid
        """
        if isinstance(status, str):
            try:
                status = WorkerState(status)
            except ValueError as e:
                raise ValueError(f"Invalid worker state: {status}") from e

        state = cls._states.get(status)
        if not state:
            raise ValueError(f"No state found for status: {status}")

        return state


class WorkerStateMachine:
    """Thread-safe holder of one worker's lifecycle state."""

    def __init__(self, worker_id: int) -> None:
        self.worker_id = worker_id
        self._state = StateFactory.get_state(WorkerState.STARTING)
        self._lock = threading.Lock()
        self._stopped = threading.Event()

    @property
    def status(self) -> WorkerState:
        with self._lock:
            return self._state.get_status()

    def transition(self, target: WorkerState) -> WorkerState:
        """
        Move to ``target``.

        Returns:
            The previous state

        Raises:
            InvalidWorkerStateError: If the transition is not allowed
        """
        with self._lock:
            current = self._state.get_status()
            if not self._state.can_transition_to(target):
                raise InvalidWorkerStateError(self.worker_id, current.value, target.value)
            self._state = StateFactory.get_state(target)

        if target is WorkerState.STOPPED:
            self._stopped.set()
        return current

    def transition_if(self, expected: WorkerState, target: WorkerState) -> bool:
        """Move to ``target`` only if currently ``expected`` (compare-and-set)."""
        with self._lock:
            if self._state.get_status() is not expected:
                return False
            if not self._state.can_transition_to(target):
                raise InvalidWorkerStateError(self.worker_id, expected.value, target.value)
            self._state = StateFactory.get_state(target)

        if target is WorkerState.STOPPED:
            self._stopped.set()
        return True

    def wait_stopped(self, timeout: float | None = None) -> bool:
        """Block until STOPPED; returns False on timeout."""
        return self._stopped.wait(timeout=timeout)
