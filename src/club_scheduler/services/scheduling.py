"""Scheduling facade exposed to the API layer."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

from club_scheduler.domain.errors import ClassifiedError
from club_scheduler.domain.events import ALL_EVENTS, EventType
from club_scheduler.domain.results import Envelope, Err
from club_scheduler.domain.sessions import (
    BulkResult,
    CancelRequest,
    ScheduleRequest,
    Session,
    SessionStatus,
)
from club_scheduler.services.bulk import BulkMutationCoordinator, CancellationToken
from club_scheduler.services.conflicts import ConflictDetector
from club_scheduler.services.dates import (
    SchedulingPolicy,
    build_work_items,
    resolve_batches,
)
from club_scheduler.services.errors import (
    classify_error,
    failure_response,
    success_response,
    validation_error,
)
from club_scheduler.services.realtime import (
    EventCallback,
    SubscriptionMultiplexer,
    Unsubscribe,
)
from club_scheduler.services.retry import Retrier
from club_scheduler.services.sessions import SessionRepository

DECEMBER = 12
SESSIONS_COLLECTION = "classes"

_logger = logging.getLogger(__name__)


@dataclass
class SchedulingService:
    """Public operations for scheduling, cancelling and reading sessions.

    Every operation returns an envelope; exceptions never cross this boundary.
    Bulk calls may carry a caller key. A new bulk call cancels only the call
    in flight under the same key; calls from other callers always run to
    completion.
    """

    repository: SessionRepository
    coordinator: BulkMutationCoordinator
    conflict_detector: ConflictDetector
    multiplexer: SubscriptionMultiplexer
    retrier: Retrier
    policy: SchedulingPolicy = field(default_factory=SchedulingPolicy)
    clock: Callable[[], datetime] = lambda: datetime.now(tz=UTC)
    sessions_collection: str = SESSIONS_COLLECTION
    _inflight: dict[object, CancellationToken] = field(
        default_factory=dict, init=False
    )

    async def schedule_sessions(
        self, request: ScheduleRequest, caller: str | None = None
    ) -> Envelope:
        """Schedule sessions for every (date, batch) in the request."""
        try:
            plan = self.policy.plan(
                request.start_date,
                request.end_date,
                request.batches,
                request.excluded_weekdays,
                now=self.clock(),
            )
            if not plan.valid:
                return failure_response(
                    validation_error(plan.problems, "schedule_sessions")
                )
            key, token = self._begin_bulk_call(caller)
            try:
                outcome = await self.coordinator.schedule(
                    plan.work_items,
                    scheduled_by=request.scheduled_by,
                    notes=request.notes,
                    skip_conflicts=request.skip_conflicts,
                    cancel_token=token,
                )
            finally:
                self._end_bulk_call(key, token)
            if token.cancelled:
                return failure_response(_cancelled_error("schedule_sessions"))
            if isinstance(outcome, Err):
                return failure_response(outcome.error)
            return success_response(outcome.value, _schedule_message(outcome.value))
        except Exception as exc:
            return failure_response(classify_error(exc, "schedule_sessions"))

    async def cancel_sessions(
        self, request: CancelRequest, caller: str | None = None
    ) -> Envelope:
        """Cancel scheduled sessions for every (date, batch) in the request."""
        try:
            plan = self.policy.plan(
                request.start_date,
                request.end_date,
                request.batches,
                request.excluded_weekdays,
                now=self.clock(),
            )
            if not plan.valid:
                return failure_response(
                    validation_error(plan.problems, "cancel_sessions")
                )
            key, token = self._begin_bulk_call(caller)
            try:
                outcome = await self.coordinator.cancel(
                    plan.work_items,
                    cancelled_by=request.cancelled_by,
                    reason=request.reason,
                    cancel_token=token,
                )
            finally:
                self._end_bulk_call(key, token)
            if token.cancelled:
                return failure_response(_cancelled_error("cancel_sessions"))
            if isinstance(outcome, Err):
                return failure_response(outcome.error)
            return success_response(outcome.value, _cancel_message(outcome.value))
        except Exception as exc:
            return failure_response(classify_error(exc, "cancel_sessions"))

    async def check_conflicts(self, dates: list[date], batches: list[str]) -> Envelope:
        """Report which (date, batch) pairs already hold a scheduled session."""
        try:
            resolved, unknown = resolve_batches(batches)
            problems = []
            if not dates:
                problems.append("At least one date is required")
            if not batches:
                problems.append("At least one batch must be selected")
            if unknown:
                problems.append(f"Invalid batches: {', '.join(unknown)}")
            if problems:
                return failure_response(
                    validation_error(problems, "check_conflicts")
                )
            work_items = build_work_items(sorted(set(dates)), resolved)
            outcome = await self.conflict_detector.check(work_items)
            if isinstance(outcome, Err):
                return failure_response(outcome.error)
            return success_response(outcome.value, "Conflict check completed")
        except Exception as exc:
            return failure_response(classify_error(exc, "check_conflicts"))

    async def list_sessions(
        self,
        start: date,
        end: date,
        batches: list[str] | None = None,
        statuses: list[str] | None = None,
    ) -> Envelope:
        """Return sessions in a date range, optionally filtered."""
        try:
            problems = []
            if start > end:
                problems.append("Start date must be before end date")
            resolved, unknown = resolve_batches(batches or [])
            if unknown:
                problems.append(f"Invalid batches: {', '.join(unknown)}")
            parsed_statuses, bad_statuses = _parse_statuses(statuses or [])
            if bad_statuses:
                problems.append(f"Invalid statuses: {', '.join(bad_statuses)}")
            if problems:
                return failure_response(validation_error(problems, "list_sessions"))

            batch_names = [batch.value.name for batch in resolved] or None
            outcome = await self.retrier.run(
                lambda: self.repository.list_sessions(
                    start, end, batch_names, parsed_statuses or None
                ),
                "list_sessions",
            )
            if isinstance(outcome, Err):
                return failure_response(outcome.error)
            sessions = outcome.value
            return success_response(
                {
                    "sessions": [session.to_dict() for session in sessions],
                    "total": len(sessions),
                    "date_range": {
                        "start_date": start.isoformat(),
                        "end_date": end.isoformat(),
                    },
                },
                f"Found {len(sessions)} sessions",
            )
        except Exception as exc:
            return failure_response(classify_error(exc, "list_sessions"))

    async def get_statistics(self, period: str = "week") -> Envelope:
        """Aggregate session counts by status and batch for a period."""
        try:
            period_range = self._period_range(period)
            if period_range is None:
                return failure_response(
                    validation_error(
                        [f"Invalid period: {period}. Use day, week or month"],
                        "get_statistics",
                    )
                )
            start, end = period_range
            listed = await self.list_sessions(start, end)
            if not listed.success:
                return listed
            sessions = listed.data["sessions"]
            stats = aggregate_statistics(sessions)
            stats["period"] = period
            stats["date_range"] = {
                "start_date": start.isoformat(),
                "end_date": end.isoformat(),
            }
            return success_response(stats, f"Session statistics for {period}")
        except Exception as exc:
            return failure_response(classify_error(exc, "get_statistics"))

    async def subscribe(
        self,
        collection: str,
        callback: EventCallback,
        events: Iterable[EventType | str] = ALL_EVENTS,
    ) -> Unsubscribe:
        """Subscribe to change events for a collection."""
        return await self.multiplexer.subscribe(collection, callback, events)

    async def watch_sessions(self, callback: EventCallback) -> Unsubscribe:
        """Subscribe to session changes and keep the session mirror live."""
        return await self.subscribe(self.sessions_collection, callback)

    def cached_sessions(self) -> list[dict[str, object]]:
        """Return sessions from the live mirror without querying the store.

        Mirror records are mapped like store rows, so the shape matches
        ``list_sessions``. Records too incomplete to map are skipped.
        """
        sessions = []
        for document in self.multiplexer.snapshot(self.sessions_collection):
            try:
                sessions.append(Session.from_row(document).to_dict())
            except (KeyError, ValueError):
                _logger.warning("Skipping unmappable mirror record %s", document)
        return sessions

    def cancel_inflight(self, caller: str | None = None) -> int:
        """Cancel bulk calls in flight.

        With a caller key only that caller's call is cancelled; without one
        every call in flight is. Returns how many calls were cancelled.
        """
        if caller is not None:
            token = self._inflight.pop(caller, None)
            tokens = [token] if token is not None else []
        else:
            tokens = list(self._inflight.values())
            self._inflight.clear()
        for token in tokens:
            token.cancel()
        return len(tokens)

    def _begin_bulk_call(
        self, caller: str | None
    ) -> tuple[object, CancellationToken]:
        key: object = caller if caller is not None else object()
        previous = self._inflight.get(key)
        if previous is not None:
            _logger.info("Superseding the bulk call in flight for %s", caller)
            previous.cancel()
        token = CancellationToken()
        self._inflight[key] = token
        return key, token

    def _end_bulk_call(self, key: object, token: CancellationToken) -> None:
        if self._inflight.get(key) is token:
            del self._inflight[key]

    def _period_range(self, period: str) -> tuple[date, date] | None:
        today = self.clock().astimezone(self.policy.timezone).date()
        if period == "day":
            return today, today
        if period == "week":
            start = today - timedelta(days=(today.weekday() + 1) % 7)
            return start, start + timedelta(days=6)
        if period == "month":
            start = today.replace(day=1)
            if start.month == DECEMBER:
                next_month = start.replace(year=start.year + 1, month=1)
            else:
                next_month = start.replace(month=start.month + 1)
            return start, next_month - timedelta(days=1)
        return None


def aggregate_statistics(sessions: list[dict[str, object]]) -> dict[str, object]:
    """Count sessions by status overall and per batch."""
    statuses = [status.value for status in SessionStatus]
    stats: dict[str, object] = {"total": len(sessions)}
    for status in statuses:
        stats[status] = 0
    by_batch: dict[str, dict[str, int]] = {}
    for session in sessions:
        status = str(session.get("status"))
        batch = str(session.get("batch"))
        bucket = by_batch.setdefault(
            batch, {"total": 0, **{name: 0 for name in statuses}}
        )
        bucket["total"] += 1
        if status in statuses:
            stats[status] = int(stats[status]) + 1
            bucket[status] += 1
    stats["by_batch"] = by_batch
    return stats


def _parse_statuses(values: list[str]) -> tuple[list[SessionStatus], list[str]]:
    parsed: list[SessionStatus] = []
    invalid: list[str] = []
    for value in values:
        try:
            parsed.append(SessionStatus(value.strip().lower()))
        except ValueError:
            invalid.append(value)
    return parsed, invalid


def _cancelled_error(operation: str) -> ClassifiedError:
    return classify_error(
        {"code": "operation_cancelled", "message": "Cancelled before it finished"},
        operation,
    )


def _schedule_message(result: BulkResult) -> str:
    if result.failed_count:
        return (
            f"Scheduled {result.succeeded_count} sessions "
            f"with {result.failed_count} errors"
        )
    return f"Successfully scheduled {result.succeeded_count} sessions"


def _cancel_message(result: BulkResult) -> str:
    if not result.succeeded_count and not result.failed_count:
        return "No matching sessions found to cancel"
    if result.failed_count:
        return (
            f"Cancelled {result.succeeded_count} sessions "
            f"with {result.failed_count} errors"
        )
    return f"Successfully cancelled {result.succeeded_count} sessions"
