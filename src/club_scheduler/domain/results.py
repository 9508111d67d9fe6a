"""Tagged results and response envelopes."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, TypeVar, Union

from club_scheduler.domain.errors import ClassifiedError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome."""

    value: T


@dataclass(frozen=True)
class Err:
    """Failed outcome carrying a classified error."""

    error: ClassifiedError


Outcome = Union[Ok[T], Err]  # noqa: UP007


@dataclass(frozen=True)
class SuccessEnvelope:
    """Standard success response."""

    data: object
    message: str
    timestamp: datetime
    meta: dict[str, object] = field(default_factory=dict)
    success: bool = True

    def to_dict(self) -> dict[str, object]:
        data = self.data.to_dict() if hasattr(self.data, "to_dict") else self.data
        return {
            "success": True,
            "data": data,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            **self.meta,
        }


@dataclass(frozen=True)
class FailureEnvelope:
    """Standard failure response."""

    error: ClassifiedError
    success: bool = False

    @property
    def message(self) -> str:
        return self.error.user_message

    def to_dict(self) -> dict[str, object]:
        return {
            "success": False,
            "message": self.error.user_message,
            "error": self.error.to_dict(),
            "timestamp": self.error.timestamp.isoformat(),
        }


Envelope = SuccessEnvelope | FailureEnvelope
