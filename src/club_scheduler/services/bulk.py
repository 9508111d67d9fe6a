"""Bulk schedule and cancel operations with per-item accounting."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime

from club_scheduler.domain.errors import ClassifiedError
from club_scheduler.domain.results import Err, Ok, Outcome
from club_scheduler.domain.sessions import (
    BulkAction,
    BulkFailure,
    BulkResult,
    NewSession,
    Session,
    SessionCancellation,
    SessionStatus,
    WorkItem,
)
from club_scheduler.services.activity import ActivityService
from club_scheduler.services.conflicts import ConflictDetector
from club_scheduler.services.errors import classify_error, conflict_error
from club_scheduler.services.retry import Retrier
from club_scheduler.services.sessions import SessionRepository

_logger = logging.getLogger(__name__)


class CancellationToken:
    """Caller-controlled flag that stops a bulk loop between items."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class BulkAccumulator:
    """Collects per-item outcomes of one bulk call."""

    action: BulkAction
    sessions: list[Session] = field(default_factory=list)
    failures: list[BulkFailure] = field(default_factory=list)
    interrupted: bool = False

    def record(self, item: WorkItem, outcome: Outcome[Session]) -> None:
        if isinstance(outcome, Ok):
            self.sessions.append(outcome.value)
        else:
            self.fail(item, outcome.error)

    def fail(self, item: WorkItem, error: ClassifiedError) -> None:
        self.failures.append(
            BulkFailure(date=item.date, batch=item.batch_name, error=error)
        )

    def result(self) -> BulkResult:
        return BulkResult(
            action=self.action,
            sessions=list(self.sessions),
            failures=list(self.failures),
            interrupted=self.interrupted,
        )


@dataclass
class BulkMutationCoordinator:
    """Runs bulk mutations sequentially, isolating per-item failures."""

    repository: SessionRepository
    conflict_detector: ConflictDetector
    activity_service: ActivityService
    retrier: Retrier
    clock: Callable[[], datetime] = lambda: datetime.now(tz=UTC)

    async def schedule(  # noqa: PLR0913
        self,
        work_items: list[WorkItem],
        scheduled_by: str,
        notes: str = "",
        skip_conflicts: bool = False,
        cancel_token: CancellationToken | None = None,
    ) -> Outcome[BulkResult]:
        """Create a scheduled session for every work item."""
        if not skip_conflicts:
            check = await self.conflict_detector.check(work_items)
            if isinstance(check, Err):
                return check
            report = check.value
            if report.has_conflicts:
                return Err(
                    conflict_error(
                        len(report.conflicts),
                        "schedule_sessions",
                        [conflict.to_dict() for conflict in report.conflicts],
                    )
                )

        accumulator = BulkAccumulator(action=BulkAction.SCHEDULE)
        for item in work_items:
            if cancel_token is not None and cancel_token.cancelled:
                accumulator.interrupted = True
                break
            payload = self._new_session(item, scheduled_by, notes)
            outcome = await self.retrier.run(
                lambda payload=payload: self.repository.create_session(payload),
                "schedule_session",
            )
            accumulator.record(item, outcome)

        result = accumulator.result()
        await self.activity_service.record(
            "sessions_scheduled",
            scheduled_by,
            {
                **_summary(work_items, result),
                "notes": notes,
                "skip_conflicts": skip_conflicts,
            },
        )
        return _finalize(result, "schedule_sessions")

    async def cancel(
        self,
        work_items: list[WorkItem],
        cancelled_by: str,
        reason: str = "",
        cancel_token: CancellationToken | None = None,
    ) -> Outcome[BulkResult]:
        """Cancel every scheduled session matching the work items."""
        accumulator = BulkAccumulator(action=BulkAction.CANCEL)
        for item in work_items:
            if cancel_token is not None and cancel_token.cancelled:
                accumulator.interrupted = True
                break
            found = await self.retrier.run(
                lambda item=item: self.repository.find_sessions(
                    item.date, item.batch_name, SessionStatus.SCHEDULED
                ),
                "find_sessions_to_cancel",
            )
            if isinstance(found, Err):
                accumulator.fail(item, found.error)
                continue
            for session in found.value:
                if not session.status.can_transition_to(SessionStatus.CANCELLED):
                    continue
                patch = SessionCancellation(
                    cancelled_by=cancelled_by,
                    reason=reason,
                    cancelled_at=self.clock(),
                )
                outcome = await self.retrier.run(
                    lambda session=session, patch=patch: (
                        self.repository.update_session(session.id, patch)
                    ),
                    "cancel_session",
                )
                accumulator.record(item, outcome)

        result = accumulator.result()
        await self.activity_service.record(
            "sessions_cancelled",
            cancelled_by,
            {**_summary(work_items, result), "reason": reason},
        )
        return _finalize(result, "cancel_sessions")

    def _new_session(self, item: WorkItem, scheduled_by: str, notes: str) -> NewSession:
        config = item.batch.value
        return NewSession(
            date=item.date,
            batch=config.name,
            time=config.default_time,
            capacity=config.capacity,
            scheduled_by=scheduled_by,
            notes=notes,
            created_at=self.clock(),
        )


def _finalize(result: BulkResult, operation: str) -> Outcome[BulkResult]:
    if result.succeeded_count or not result.failed_count:
        return Ok(result)
    error = classify_error(
        {
            "code": "bulk_operation_failed",
            "message": f"All {result.failed_count} items failed",
        },
        operation,
        {"failures": [failure.to_dict() for failure in result.failures]},
    )
    retryable = any(failure.error.retryable for failure in result.failures)
    return Err(replace(error, retryable=retryable))


def _summary(work_items: list[WorkItem], result: BulkResult) -> dict[str, object]:
    dates: list[date] = [item.date for item in work_items]
    batches: list[str] = []
    for item in work_items:
        if item.batch_name not in batches:
            batches.append(item.batch_name)
    date_range = (
        f"{min(dates).isoformat()} to {max(dates).isoformat()}" if dates else ""
    )
    return {
        "count": result.succeeded_count,
        "errors": result.failed_count,
        "date_range": date_range,
        "batches": ", ".join(batches),
        "interrupted": result.interrupted,
    }
