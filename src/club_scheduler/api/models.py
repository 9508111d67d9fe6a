"""Pydantic models for scheduling API payloads."""

from datetime import date

from pydantic import BaseModel, Field

from club_scheduler.domain.sessions import CancelRequest, ScheduleRequest


class SchedulePayload(BaseModel):
    """Bulk scheduling request body."""

    start_date: date
    end_date: date
    batches: list[str]
    excluded_weekdays: list[int] = Field(default_factory=lambda: [0])
    notes: str = ""
    skip_conflicts: bool = False
    scheduled_by: str = "system"

    def to_request(self) -> ScheduleRequest:
        return ScheduleRequest(
            start_date=self.start_date,
            end_date=self.end_date,
            batches=self.batches,
            excluded_weekdays=frozenset(self.excluded_weekdays),
            notes=self.notes,
            skip_conflicts=self.skip_conflicts,
            scheduled_by=self.scheduled_by,
        )


class CancelPayload(BaseModel):
    """Bulk cancellation request body."""

    start_date: date
    end_date: date
    batches: list[str]
    reason: str = ""
    cancelled_by: str = "system"
    excluded_weekdays: list[int] = Field(default_factory=list)

    def to_request(self) -> CancelRequest:
        return CancelRequest(
            start_date=self.start_date,
            end_date=self.end_date,
            batches=self.batches,
            reason=self.reason,
            cancelled_by=self.cancelled_by,
            excluded_weekdays=frozenset(self.excluded_weekdays),
        )


class ConflictPayload(BaseModel):
    """Conflict check request body."""

    dates: list[date]
    batches: list[str]
