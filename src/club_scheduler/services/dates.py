"""Date-range expansion and scheduling policy checks."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from club_scheduler.domain.batches import Batch
from club_scheduler.domain.sessions import WorkItem

MIN_ADVANCE_HOURS = 2
MAX_ADVANCE_DAYS = 90
MAX_BULK_OPERATIONS = 50

_DAYS_PER_WEEK = 7
_WEEKDAYS = range(_DAYS_PER_WEEK)


def weekday_index(day: date) -> int:
    """Return the weekday with 0=Sunday through 6=Saturday."""
    return (day.weekday() + 1) % _DAYS_PER_WEEK


def expand_dates(
    start: date, end: date, excluded_weekdays: Iterable[int] = ()
) -> list[date]:
    """Return the dates in [start, end] whose weekday is not excluded."""
    excluded = set(excluded_weekdays)
    dates = []
    current = start
    while current <= end:
        if weekday_index(current) not in excluded:
            dates.append(current)
        current += timedelta(days=1)
    return dates


def build_work_items(dates: list[date], batches: list[Batch]) -> list[WorkItem]:
    """Cross dates with batches, date-major then batch-minor."""
    return [WorkItem(date=day, batch=batch) for day in dates for batch in batches]


def resolve_batches(values: list[str]) -> tuple[list[Batch], list[str]]:
    """Resolve batch identifiers, returning (known, unknown)."""
    known: list[Batch] = []
    unknown: list[str] = []
    for value in values:
        batch = Batch.lookup(value)
        if batch is None:
            unknown.append(value)
        elif batch not in known:
            known.append(batch)
    return known, unknown


@dataclass(frozen=True)
class RangePlan:
    """Validated work plan for a bulk call."""

    work_items: list[WorkItem]
    problems: list[str]

    @property
    def valid(self) -> bool:
        return not self.problems


@dataclass(frozen=True)
class SchedulingPolicy:
    """Limits applied before any bulk operation touches the store."""

    min_advance_hours: int = MIN_ADVANCE_HOURS
    max_advance_days: int = MAX_ADVANCE_DAYS
    max_bulk_operations: int = MAX_BULK_OPERATIONS
    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo("UTC"))

    def plan(  # noqa: PLR0913
        self,
        start: date,
        end: date,
        batches: list[str],
        excluded_weekdays: Iterable[int] = (),
        now: datetime | None = None,
    ) -> RangePlan:
        """Expand a request into work items, collecting every policy violation."""
        current = now or datetime.now(tz=UTC)
        problems: list[str] = []
        resolved, unknown = resolve_batches(batches)
        excluded = set(excluded_weekdays)

        if not batches:
            problems.append("At least one batch must be selected")
        if unknown:
            problems.append(f"Invalid batches: {', '.join(unknown)}")
        invalid_days = sorted(day for day in excluded if day not in _WEEKDAYS)
        if invalid_days:
            problems.append(
                f"Excluded weekdays must be between 0 and 6: {invalid_days}"
            )
        if start > end:
            problems.append("Start date must be before end date")

        earliest = current + timedelta(hours=self.min_advance_hours)
        latest = current + timedelta(days=self.max_advance_days)
        if self._start_of(start) < earliest:
            problems.append(
                "Start date: sessions must be scheduled at least "
                f"{self.min_advance_hours} hours in advance"
            )
        if self._start_of(end) > latest:
            problems.append(
                "End date: sessions cannot be scheduled more than "
                f"{self.max_advance_days} days in advance"
            )

        work_items: list[WorkItem] = []
        if start <= end and resolved:
            dates = expand_dates(start, end, excluded)
            work_items = build_work_items(dates, resolved)
            if not work_items:
                problems.append("No dates remain after excluding weekdays")
            elif len(work_items) > self.max_bulk_operations:
                problems.append(
                    f"Maximum {self.max_bulk_operations} sessions can be processed "
                    f"at once ({len(work_items)} requested)"
                )

        if problems:
            return RangePlan(work_items=[], problems=problems)
        return RangePlan(work_items=work_items, problems=[])

    def _start_of(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self.timezone)
