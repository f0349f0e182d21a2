"""Unit tests for Rebalancer."""

import time
from unittest.mock import Mock

import pytest
from conftest import wait_for

from switchyard.core.common.types import Priority
from switchyard.core.rebalancing import Rebalancer


@pytest.fixture
def mock_pool():
    pool = Mock()
    pool.rebind_all = Mock(return_value=0)
    return pool


@pytest.fixture
def rebalancer(mock_queue, mock_pool):
    rebalancer = Rebalancer(mock_queue, mock_pool, interval_seconds=0.05)
    yield rebalancer
    rebalancer.stop()


class TestRebalancerTick:
    """Test one rebalance decision."""

    def test_empty_high_queue_targets_low(self, rebalancer, mock_queue, mock_pool):
        mock_queue.depth.return_value = 0

        assert rebalancer.tick() is Priority.LOW
        mock_pool.rebind_all.assert_called_once_with(Priority.LOW)

    def test_high_backlog_targets_high(self, rebalancer, mock_queue, mock_pool):
        mock_queue.depth.return_value = 4

        assert rebalancer.tick() is Priority.HIGH
        mock_pool.rebind_all.assert_called_once_with(Priority.HIGH)

    def test_tick_records_stats(self, rebalancer, mock_queue):
        mock_queue.depth.return_value = 2
        rebalancer.tick()

        status = rebalancer.get_status()
        assert status["last_target"] == "high"
        assert status["last_high_depth"] == 2
        assert status["tick_count"] == 1
        assert status["error_count"] == 0
        assert status["last_tick_at"] is not None

    def test_depth_error_is_isolated(self, rebalancer, mock_queue, mock_pool):
        mock_queue.depth.side_effect = ConnectionError("redis down")

        assert rebalancer.tick() is None
        mock_pool.rebind_all.assert_not_called()
        assert rebalancer.error_count == 1
        assert rebalancer.last_target is None

    def test_rebind_error_is_isolated(self, rebalancer, mock_pool):
        mock_pool.rebind_all.side_effect = RuntimeError("boom")

        assert rebalancer.tick() is None
        assert rebalancer.error_count == 1

    def test_invalid_interval(self, mock_queue, mock_pool):
        with pytest.raises(ValueError, match="interval_seconds"):
            Rebalancer(mock_queue, mock_pool, interval_seconds=0)


class TestRebalancerTimer:
    """Test start/stop."""

    def test_start_runs_immediate_tick(self, mock_queue, mock_pool):
        rebalancer = Rebalancer(mock_queue, mock_pool, interval_seconds=60)
        try:
            rebalancer.start()
            mock_pool.rebind_all.assert_called_once_with(Priority.LOW)
        finally:
            rebalancer.stop()

    def test_ticks_periodically(self, rebalancer, mock_pool):
        rebalancer.start()
        wait_for(lambda: mock_pool.rebind_all.call_count >= 3, timeout=2)

    def test_keeps_ticking_after_errors(self, rebalancer, mock_queue):
        mock_queue.depth.side_effect = ConnectionError("redis down")
        rebalancer.start()

        wait_for(lambda: rebalancer.error_count >= 3, timeout=2)
        assert rebalancer.is_running()

    def test_follows_depth_changes(self, rebalancer, mock_queue, mock_pool):
        mock_queue.depth.return_value = 1
        rebalancer.start()
        mock_queue.depth.return_value = 0

        wait_for(lambda: mock_pool.rebind_all.call_args.args == (Priority.LOW,), timeout=2)

    def test_start_twice_raises(self, rebalancer):
        rebalancer.start()
        with pytest.raises(RuntimeError, match="already running"):
            rebalancer.start()

    def test_stop_halts_ticks(self, rebalancer, mock_pool):
        rebalancer.start()
        wait_for(lambda: mock_pool.rebind_all.call_count >= 2, timeout=2)
        rebalancer.stop()

        count = mock_pool.rebind_all.call_count
        time.sleep(0.2)
        assert not rebalancer.is_running()
        assert mock_pool.rebind_all.call_count == count
