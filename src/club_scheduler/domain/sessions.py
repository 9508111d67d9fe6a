"""Domain models for scheduled class sessions."""

from dataclasses import dataclass, field
from collections.abc import Mapping
from datetime import UTC, date, datetime, time
from enum import Enum

from club_scheduler.domain.batches import Batch
from club_scheduler.domain.errors import ClassifiedError


class SessionStatus(Enum):
    """Lifecycle states of a session."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"

    def can_transition_to(self, target: "SessionStatus") -> bool:
        """Return True if the state machine allows moving to ``target``."""
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.SCHEDULED: frozenset(
        {
            SessionStatus.COMPLETED,
            SessionStatus.CANCELLED,
            SessionStatus.RESCHEDULED,
        }
    ),
    SessionStatus.RESCHEDULED: frozenset(
        {SessionStatus.SCHEDULED, SessionStatus.CANCELLED}
    ),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class Session:
    """Represents a persisted class session."""

    id: str
    date: date
    batch: str
    time: time | None
    status: SessionStatus
    capacity: int | None
    notes: str | None = None
    cancellation_reason: str | None = None
    scheduled_by: str | None = None
    cancelled_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    cancelled_at: datetime | None = None

    def to_dict(self) -> dict[str, object]:
        """Serialize for envelopes."""
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "batch": self.batch,
            "time": self.time.strftime("%H:%M") if self.time else None,
            "status": self.status.value,
            "capacity": self.capacity,
            "notes": self.notes,
            "cancellation_reason": self.cancellation_reason,
            "scheduled_by": self.scheduled_by,
            "cancelled_by": self.cancelled_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "cancelled_at": _iso(self.cancelled_at),
        }

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> "Session":
        """Build a session from a sessions table row or change-feed record."""
        capacity = row.get("capacity")
        return cls(
            id=str(row["id"]),
            date=date.fromisoformat(str(row["date"])[:10]),
            batch=str(row.get("batch_name", "")),
            time=_parse_time(row.get("time")),
            status=SessionStatus(str(row.get("status", "scheduled"))),
            capacity=int(capacity) if capacity is not None else None,
            notes=row.get("notes"),
            cancellation_reason=row.get("cancellation_reason"),
            scheduled_by=row.get("scheduled_by"),
            cancelled_by=row.get("cancelled_by"),
            created_at=_parse_timestamp(row.get("created_at")),
            updated_at=_parse_timestamp(row.get("updated_at")),
            cancelled_at=_parse_timestamp(row.get("cancelled_at")),
        )


@dataclass(frozen=True)
class NewSession:
    """Payload for creating a session."""

    date: date
    batch: str
    time: time
    capacity: int
    scheduled_by: str
    notes: str
    created_at: datetime
    status: SessionStatus = SessionStatus.SCHEDULED


@dataclass(frozen=True)
class SessionCancellation:
    """Patch applied when a session is cancelled."""

    cancelled_by: str
    reason: str
    cancelled_at: datetime
    status: SessionStatus = SessionStatus.CANCELLED


@dataclass(frozen=True)
class WorkItem:
    """A (date, batch) pair planned for a bulk operation."""

    date: date
    batch: Batch

    @property
    def batch_name(self) -> str:
        return self.batch.value.name


@dataclass(frozen=True)
class Conflict:
    """An existing scheduled session occupying a requested slot."""

    date: date
    batch: str
    existing_session: Session

    def to_dict(self) -> dict[str, object]:
        return {
            "date": self.date.isoformat(),
            "batch": self.batch,
            "existing_session": self.existing_session.to_dict(),
        }


@dataclass(frozen=True)
class ConflictReport:
    """Result of an advisory conflict check."""

    conflicts: list[Conflict]

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def to_dict(self) -> dict[str, object]:
        return {
            "has_conflicts": self.has_conflicts,
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
        }


@dataclass(frozen=True)
class BulkFailure:
    """A work item that could not be processed."""

    date: date
    batch: str
    error: ClassifiedError

    def to_dict(self) -> dict[str, object]:
        return {
            "date": self.date.isoformat(),
            "batch": self.batch,
            "error": self.error.user_message,
            "code": self.error.code,
            "retryable": self.error.retryable,
        }


class BulkAction(Enum):
    """Kinds of bulk mutation."""

    SCHEDULE = "scheduled"
    CANCEL = "cancelled"


@dataclass(frozen=True)
class BulkResult:
    """Aggregated outcome of one bulk call."""

    action: BulkAction
    sessions: list[Session]
    failures: list[BulkFailure]
    interrupted: bool = False

    @property
    def succeeded_count(self) -> int:
        return len(self.sessions)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    def to_dict(self) -> dict[str, object]:
        return {
            self.action.value: self.succeeded_count,
            "errors": self.failed_count,
            "succeeded_count": self.succeeded_count,
            "failed_count": self.failed_count,
            "sessions": [session.to_dict() for session in self.sessions],
            "failed": [failure.to_dict() for failure in self.failures],
        }


@dataclass(frozen=True)
class ScheduleRequest:
    """Bulk scheduling request."""

    start_date: date
    end_date: date
    batches: list[str]
    excluded_weekdays: frozenset[int] = frozenset({0})
    notes: str = ""
    skip_conflicts: bool = False
    scheduled_by: str = "system"


@dataclass(frozen=True)
class CancelRequest:
    """Bulk cancellation request."""

    start_date: date
    end_date: date
    batches: list[str]
    reason: str = ""
    cancelled_by: str = "system"
    excluded_weekdays: frozenset[int] = field(default_factory=frozenset)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_time(value: object) -> time | None:
    if not value:
        return None
    return time.fromisoformat(str(value))


def _parse_timestamp(value: object) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed
