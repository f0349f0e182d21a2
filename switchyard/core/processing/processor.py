"""Job processors: forward one item payload to the downstream service."""

import threading
from abc import ABC, abstractmethod
from typing import Any

import httpx

from switchyard.core.processing.outcome import Failure, ProcessingOutcome, Success
from switchyard.utils.logging import ContextLogger, resolve_logger


class JobProcessor(ABC):
    """Turns one payload into a ProcessingOutcome.

    Implementations never raise for expected downstream failures and never
    retry; retries belong to the queue.
    """

    @abstractmethod
    def process(self, payload: Any, logger: ContextLogger | None = None) -> ProcessingOutcome:
        """
        Process one payload.

        Args:
            payload: Item payload
            logger: Item-scoped logger (optional)

        Returns:
            Success or Failure
        """
        pass

    def close(self) -> None:
        """Release processor resources."""
        return None


class WebhookProcessor(JobProcessor):
    """
    POSTs the payload as JSON to a downstream webhook.

    Outcome mapping:
    - 2xx with a JSON or empty body -> Success(status_code, body)
    - non-2xx -> Failure(DOWNSTREAM_HTTP_ERROR) carrying the downstream status and body
    - timeout, connection error, non-JSON success body -> Failure(TRANSPORT_ERROR)

    Example:
        >>> processor = WebhookProcessor("https://n8n.example.com/webhook/abc")
        >>> outcome = processor.process({"a": 1})
        >>> processor.close()
    """

    DEFAULT_TIMEOUT_SECONDS = 30.0

    def __init__(
        self,
        url: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        headers: dict[str, str] | None = None,
        client: httpx.Client | None = None,
        logger: ContextLogger | None = None,
    ) -> None:
        """
        Initialize webhook processor.

        Args:
            url: Downstream webhook URL
            timeout_seconds: Per-call timeout
            headers: Extra request headers
            client: Pre-built httpx client (tests inject one with a MockTransport)
            logger: Logger (uses default if None)

        Raises:
            ValueError: If parameters are invalid
        """
        if not url:
            raise ValueError("url cannot be empty")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        self.url = url
        self.timeout_seconds = timeout_seconds
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self.logger = resolve_logger(logger, self.__class__.__name__)

        self._client = client
        self._owns_client = client is None
        self._client_lock = threading.Lock()

    def _get_client(self) -> httpx.Client:
        """Get or create the HTTP client."""
        with self._client_lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.Client(timeout=self.timeout_seconds, headers=self.headers)
                self._owns_client = True
            return self._client

    def process(self, payload: Any, logger: ContextLogger | None = None) -> ProcessingOutcome:
        """POST payload downstream and classify the response."""
        log = logger or self.logger

        try:
            response = self._get_client().post(
                self.url, json=payload, headers=self.headers, timeout=self.timeout_seconds
            )
        except httpx.TimeoutException as e:
            log.error("Downstream call timed out", timeout_seconds=self.timeout_seconds)
            return Failure.transport(e)
        except httpx.HTTPError as e:
            log.error("Downstream call failed", error=str(e), error_type=type(e).__name__)
            return Failure.transport(e)

        if not response.is_success:
            body = self._parse_body(response)
            log.error(
                "Downstream rejected item",
                status_code=response.status_code,
                body=response.text[:500],
            )
            return Failure.downstream(response.status_code, body)

        if not response.content:
            log.info("Downstream accepted item", status_code=response.status_code)
            return Success(status_code=response.status_code, body=None)

        try:
            body = response.json()
        except ValueError as e:
            log.error(
                "Downstream returned malformed response",
                status_code=response.status_code,
                error=str(e),
            )
            return Failure.transport(f"Malformed response body: {e}")

        log.info("Downstream accepted item", status_code=response.status_code)
        return Success(status_code=response.status_code, body=body)

    def close(self) -> None:
        """Close the HTTP client if this processor created it."""
        with self._client_lock:
            if self._client is not None and self._owns_client and not self._client.is_closed:
                self._client.close()
            self._client = None

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        """Error bodies are relayed verbatim: JSON when parseable, text otherwise."""
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text
