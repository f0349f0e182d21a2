"""Unit tests for logging utilities."""

import logging

import pytest

from switchyard.utils.logging import ContextLogger, resolve_logger, set_log_level, setup_logger


class TestContextLogger:
    """Test context rendering."""

    def test_context_passed_as_extra(self, mock_logger):
        logger = ContextLogger(mock_logger, {"component": "Worker", "worker_id": 1})
        logger.info("Processing item", item_id="abc")

        message = mock_logger.info.call_args.args[0]
        extra = mock_logger.info.call_args.kwargs["extra"]
        assert message == "Processing item"
        assert extra == {"context": "component=Worker, worker_id=1, item_id=abc"}

    def test_with_context_extends(self, mock_logger):
        child = ContextLogger(mock_logger, {"a": 1}).with_context(b=2)
        assert child.context == {"a": 1, "b": 2}

    def test_error_forwards_exc_info(self, mock_logger):
        ContextLogger(mock_logger).error("boom", exc_info=True)
        assert mock_logger.error.call_args.kwargs["exc_info"] is True


class TestResolveLogger:
    """Test component tagging."""

    def test_default_logger(self):
        logger = resolve_logger(None, "Rebalancer")
        assert logger.logger is logging.getLogger("switchyard")
        assert logger.context == {"component": "Rebalancer"}

    def test_context_logger_keeps_existing_context(self, mock_logger):
        parent = ContextLogger(mock_logger, {"request_id": "r1"})
        logger = resolve_logger(parent, "WorkerPool")
        assert logger.context == {"request_id": "r1", "component": "WorkerPool"}

    def test_plain_logger_wrapped(self):
        plain = logging.getLogger("switchyard.test")
        assert resolve_logger(plain, "X").logger is plain


class TestLogLevel:
    """Test logger setup and level changes."""

    def test_setup_logger_single_handler(self):
        first = setup_logger("switchyard.test.setup")
        second = setup_logger("switchyard.test.setup")
        assert first is second
        assert len(second.handlers) == 1

    def test_set_log_level_by_name(self):
        setup_logger("switchyard.test.level")
        set_log_level("debug", "switchyard.test.level")

        logger = logging.getLogger("switchyard.test.level")
        assert logger.level == logging.DEBUG
        assert all(h.level == logging.DEBUG for h in logger.handlers)

    def test_unknown_level_raises(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            set_log_level("LOUD")
