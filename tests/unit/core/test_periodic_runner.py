"""Unit tests for PeriodicRunner."""

import threading
import time

import pytest

from switchyard.core.rebalancing import PeriodicRunner


class TestPeriodicRunnerBasic:
    """Test PeriodicRunner basic operations."""

    def test_start_executes_task_periodically(self):
        counter = {"value": 0}
        lock = threading.Lock()

        def increment():
            with lock:
                counter["value"] += 1

        runner = PeriodicRunner()
        runner.add_task(increment, 0.1, "test")
        runner.start()

        time.sleep(0.55)
        runner.shutdown(wait=True)

        with lock:
            assert counter["value"] >= 3

    def test_first_run_waits_one_interval(self):
        calls = []
        runner = PeriodicRunner()
        runner.add_task(lambda: calls.append(1), 10, "slow")
        runner.start()

        time.sleep(0.1)
        runner.shutdown(wait=True)
        assert calls == []

    def test_shutdown_stops_execution(self):
        counter = {"value": 0}
        lock = threading.Lock()

        def increment():
            with lock:
                counter["value"] += 1

        runner = PeriodicRunner()
        runner.add_task(increment, 0.1, "test")
        runner.start()

        time.sleep(0.3)
        runner.shutdown(wait=True)

        with lock:
            count_after_stop = counter["value"]

        time.sleep(0.3)

        with lock:
            assert counter["value"] == count_after_stop
        assert not runner.is_running()

    def test_invalid_interval(self):
        with pytest.raises(ValueError, match="interval"):
            PeriodicRunner().add_task(lambda: None, 0, "bad")


class TestPeriodicRunnerExceptionHandling:
    """Test _run_loop exception handling."""

    def test_exception_does_not_stop_loop(self, mock_logger):
        counter = {"value": 0}

        def failing():
            counter["value"] += 1
            raise RuntimeError("tick failed")

        runner = PeriodicRunner(logger=mock_logger)
        runner.add_task(failing, 0.05, "failing")
        runner.start()

        time.sleep(0.3)
        runner.shutdown(wait=True)

        assert counter["value"] >= 2
        assert mock_logger.error.called
