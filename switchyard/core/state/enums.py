"""Worker lifecycle enumeration."""

from enum import Enum


class WorkerState(str, Enum):
    """Worker lifecycle state."""

    STARTING = "starting"  # Constructed, thread not running yet
    BOUND = "bound"  # Claiming from its queue
    DRAINING = "draining"  # Finishing the in-flight item, no new claims
    STOPPED = "stopped"  # Thread finished, binding released

    def __str__(self) -> str:
        return self.value

    def can_claim(self) -> bool:
        """Check if a worker in this state may issue a new claim."""
        return self is WorkerState.BOUND
