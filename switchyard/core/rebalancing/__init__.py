"""Worker rebalancing: policy, timer and rebalancer."""

from switchyard.core.rebalancing.policy import RebalancePolicy
from switchyard.core.rebalancing.rebalancer import Rebalancer
from switchyard.core.rebalancing.runner import PeriodicRunner

__all__ = ["RebalancePolicy", "Rebalancer", "PeriodicRunner"]
