"""Rebalance policy: which queue should the whole pool serve."""

from switchyard.core.common.types import Priority


class RebalancePolicy:
    """
    Stateless, deterministic binding decision.

    Any waiting HIGH item pulls the whole pool onto HIGH; the pool serves LOW
    only while HIGH is empty. There is no proportional split: a backlog of
    one HIGH item and a backlog of a thousand produce the same target, and
    LOW items wait for as long as HIGH has work.
    """

    def choose_binding(self, high_depth: int) -> Priority:
        """
        Compute the target binding for every worker.

        Args:
            high_depth: Unclaimed items in the HIGH queue

        Returns:
            Priority.LOW if high_depth == 0, otherwise Priority.HIGH

        Raises:
            ValueError: If high_depth is negative
        """
        if high_depth < 0:
            raise ValueError(f"high_depth must be >= 0, got {high_depth}")
        return Priority.LOW if high_depth == 0 else Priority.HIGH

    def __call__(self, high_depth: int) -> Priority:
        return self.choose_binding(high_depth)
