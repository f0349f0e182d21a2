"""Backoff policy for item retries."""

from typing import Any


class BackoffPolicy:
    """Exponential backoff with an attempt cap.

    Defaults mirror the webhook routes: 3 attempts, 2000 ms base delay,
    doubling on every failed attempt (2000 ms, 4000 ms, ...).
    """

    def __init__(
        self,
        max_attempts: int = 3,
        delay_ms: int = 2000,
        multiplier: float = 2.0,
    ) -> None:
        """
        Initialize backoff policy.

        Args:
            max_attempts: Total attempts allowed, including the first one
            delay_ms: Base delay before the first retry, in milliseconds
            multiplier: Growth factor applied per additional failed attempt

        Raises:
            ValueError: If parameters are invalid
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")
        if multiplier < 1:
            raise ValueError("multiplier must be >= 1")

        self.max_attempts = max_attempts
        self.delay_ms = delay_ms
        self.multiplier = multiplier

    def delay_for(self, attempts_made: int) -> int:
        """
        Calculate delay before the next attempt.

        Args:
            attempts_made: Attempts already made (1 after the first failure)

        Returns:
            Delay in milliseconds
        """
        if attempts_made < 1:
            return 0
        return int(self.delay_ms * (self.multiplier ** (attempts_made - 1)))

    def should_retry(self, attempts_made: int) -> bool:
        """
        Check if another attempt is allowed.

        Args:
            attempts_made: Attempts already made

        Returns:
            True if should retry
        """
        return attempts_made < self.max_attempts

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "delay_ms": self.delay_ms,
            "multiplier": self.multiplier,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "BackoffPolicy":
        if not data:
            return cls()
        return cls(
            max_attempts=int(data.get("max_attempts", 3)),
            delay_ms=int(data.get("delay_ms", 2000)),
            multiplier=float(data.get("multiplier", 2.0)),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BackoffPolicy):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return (
            f"BackoffPolicy(max_attempts={self.max_attempts}, "
            f"delay_ms={self.delay_ms}, multiplier={self.multiplier})"
        )
