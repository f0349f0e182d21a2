"""Processing and completion outcome values."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FailureKind(str, Enum):
    """Why an attempt failed."""

    DOWNSTREAM_HTTP_ERROR = "downstream_http_error"  # Call completed, downstream rejected it
    TRANSPORT_ERROR = "transport_error"  # Timeout, connection failure, malformed response
    UNEXPECTED_ERROR = "unexpected_error"  # Processor raised instead of returning an outcome

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Success:
    """Downstream accepted the item."""

    status_code: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {"success": True, "status": self.status_code, "data": self.body}


@dataclass(frozen=True)
class Failure:
    """One attempt (or the last attempt, once terminal) failed."""

    kind: FailureKind
    detail: str
    status_code: int | None = None
    body: Any = None
    attempts_made: int | None = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return False

    @classmethod
    def downstream(cls, status_code: int, body: Any) -> "Failure":
        return cls(
            kind=FailureKind.DOWNSTREAM_HTTP_ERROR,
            detail=f"Downstream returned HTTP {status_code}",
            status_code=status_code,
            body=body,
        )

    @classmethod
    def transport(cls, cause: BaseException | str) -> "Failure":
        if isinstance(cause, BaseException):
            detail = f"{type(cause).__name__}: {cause}"
        else:
            detail = cause
        return cls(kind=FailureKind.TRANSPORT_ERROR, detail=detail)

    def with_attempts(self, attempts_made: int) -> "Failure":
        """Copy of this failure annotated with the attempt count."""
        return Failure(
            kind=self.kind,
            detail=self.detail,
            status_code=self.status_code,
            body=self.body,
            attempts_made=attempts_made,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "kind": self.kind.value,
            "error": self.detail,
            "status": self.status_code,
            "body": self.body,
            "attempts_made": self.attempts_made,
        }


@dataclass(frozen=True)
class CompletionTimeout:
    """Caller stopped waiting; the item keeps processing in the background."""

    item_id: str
    timeout_seconds: float

    @property
    def ok(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": "timeout",
            "item_id": self.item_id,
            "timeout_seconds": self.timeout_seconds,
        }


ProcessingOutcome = Success | Failure
CompletionOutcome = Success | Failure | CompletionTimeout
