"""Domain models for classified failures."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ErrorKind(Enum):
    """Failure taxonomy."""

    NETWORK = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT_ERROR"
    AUTHENTICATION = "AUTHENTICATION_ERROR"
    AUTHORIZATION = "AUTHORIZATION_ERROR"
    PERMISSION = "PERMISSION_ERROR"
    VALIDATION = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND_ERROR"
    CONFLICT = "CONFLICT_ERROR"
    RATE_LIMIT = "RATE_LIMIT_ERROR"
    SERVER = "SERVER_ERROR"
    UNKNOWN = "UNKNOWN_ERROR"


class ErrorSeverity(Enum):
    """Severity levels used to pick a log level."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ClassifiedError:
    """Normalized failure with a user-facing message and retry hint."""

    kind: ErrorKind
    severity: ErrorSeverity
    code: int | str
    user_message: str
    technical_detail: str
    operation: str
    timestamp: datetime
    retryable: bool
    context: dict[str, object] = field(default_factory=dict)

    @property
    def final_attempt(self) -> bool:
        """Return True when the retry budget was exhausted."""
        return bool(self.context.get("final_attempt", False))

    def to_dict(self) -> dict[str, object]:
        """Serialize for envelopes and activity entries."""
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "code": self.code,
            "message": self.user_message,
            "details": self.technical_detail,
            "operation": self.operation,
            "timestamp": self.timestamp.isoformat(),
            "retryable": self.retryable,
            "context": _jsonable(self.context),
        }


class ClassifiedFailure(Exception):
    """Exception carrying an already classified error."""

    def __init__(self, error: ClassifiedError) -> None:
        super().__init__(error.technical_detail)
        self.error = error


def _jsonable(value: object) -> object:
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_jsonable(item) for item in value]
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value
