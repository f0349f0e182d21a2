"""Worker state management components."""

from switchyard.core.state.enums import WorkerState
from switchyard.core.state.states import LifecycleState, StateFactory, WorkerStateMachine

__all__ = [
    # Enum
    "WorkerState",
    # State Pattern
    "LifecycleState",
    "StateFactory",
    "WorkerStateMachine",
]
