"""Unit tests for custom exceptions with helpful messages."""

import pytest

from switchyard.core.common.exceptions import (
    CompletionAlreadyRegisteredError,
    CompletionError,
    ConfigurationError,
    DispatcherStateError,
    InvalidWorkerStateError,
    ItemNotFoundError,
    QueueConnectionError,
    QueueError,
    SwitchyardError,
    WorkerStateError,
)


class TestSwitchyardError:
    """Test base SwitchyardError class."""

    def test_simple_message(self):
        error = SwitchyardError("Something went wrong")
        assert str(error) == "Something went wrong"

    def test_base_class_hierarchy(self):
        """Test the exception hierarchy structure."""
        # Configuration
        assert issubclass(ConfigurationError, SwitchyardError)

        # Queue
        assert issubclass(ItemNotFoundError, QueueError)
        assert issubclass(QueueConnectionError, QueueError)
        assert issubclass(QueueError, SwitchyardError)

        # Workers
        assert issubclass(InvalidWorkerStateError, WorkerStateError)
        assert issubclass(WorkerStateError, SwitchyardError)

        # Completion
        assert issubclass(CompletionAlreadyRegisteredError, CompletionError)
        assert issubclass(CompletionError, SwitchyardError)

        # Dispatcher
        assert issubclass(DispatcherStateError, SwitchyardError)

    def test_catch_all_with_base_class(self):
        with pytest.raises(SwitchyardError):
            raise ItemNotFoundError("item-1")


class TestConfigurationError:
    """Test ConfigurationError attributes."""

    def test_records_requested_and_built(self):
        error = ConfigurationError("pool incomplete", requested=5, built=3)
        assert error.requested == 5
        assert error.built == 3
        assert str(error) == "pool incomplete"

    def test_counts_optional(self):
        error = ConfigurationError("N8N_WEBHOOK_URL must be set")
        assert error.requested is None
        assert error.built is None


class TestItemNotFoundError:
    """Test ItemNotFoundError messages."""

    def test_message_with_queue(self):
        error = ItemNotFoundError("abc", "HighPriorityQueue")
        assert str(error) == "Item 'abc' not found in queue 'HighPriorityQueue'"
        assert error.item_id == "abc"
        assert error.queue_name == "HighPriorityQueue"

    def test_message_without_queue(self):
        assert str(ItemNotFoundError("abc")) == "Item 'abc' not found"


class TestInvalidWorkerStateError:
    """Test InvalidWorkerStateError messages."""

    def test_message(self):
        error = InvalidWorkerStateError(2, "stopped", "bound")
        assert str(error) == "Worker 2 cannot transition from 'stopped' to 'bound'"
        assert error.worker_id == 2


class TestCompletionAlreadyRegisteredError:
    """Test CompletionAlreadyRegisteredError messages."""

    def test_message(self):
        error = CompletionAlreadyRegisteredError("abc")
        assert "abc" in str(error)
        assert "already registered" in str(error)
