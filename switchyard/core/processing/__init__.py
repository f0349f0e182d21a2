"""Downstream processing and outcome types."""

from switchyard.core.processing.outcome import (
    CompletionOutcome,
    CompletionTimeout,
    Failure,
    FailureKind,
    ProcessingOutcome,
    Success,
)
from switchyard.core.processing.processor import JobProcessor, WebhookProcessor

__all__ = [
    "Success",
    "Failure",
    "FailureKind",
    "CompletionTimeout",
    "ProcessingOutcome",
    "CompletionOutcome",
    "JobProcessor",
    "WebhookProcessor",
]
