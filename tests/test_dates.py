"""Tests for date expansion and scheduling policy checks."""

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

from club_scheduler.domain.batches import Batch
from club_scheduler.services.dates import (
    SchedulingPolicy,
    build_work_items,
    expand_dates,
    resolve_batches,
    weekday_index,
)

NOW = datetime(2024, 12, 10, 9, 0, tzinfo=UTC)


def test_weekday_index_starts_on_sunday() -> None:
    assert weekday_index(date(2024, 12, 15)) == 0
    assert weekday_index(date(2024, 12, 16)) == 1
    assert weekday_index(date(2024, 12, 21)) == 6


def test_expand_dates_excludes_weekends() -> None:
    dates = expand_dates(date(2024, 12, 16), date(2024, 12, 22), {0, 6})

    assert dates == [date(2024, 12, day) for day in range(16, 21)]


def test_expand_dates_single_day_and_empty_range() -> None:
    assert expand_dates(date(2024, 12, 16), date(2024, 12, 16)) == [
        date(2024, 12, 16)
    ]
    assert expand_dates(date(2024, 12, 17), date(2024, 12, 16)) == []


def test_work_items_are_date_major() -> None:
    items = build_work_items(
        [date(2024, 12, 16), date(2024, 12, 17)], [Batch.MORNING, Batch.EVENING]
    )

    assert [(item.date.day, item.batch) for item in items] == [
        (16, Batch.MORNING),
        (16, Batch.EVENING),
        (17, Batch.MORNING),
        (17, Batch.EVENING),
    ]


def test_resolve_batches_accepts_ids_and_names() -> None:
    known, unknown = resolve_batches(["MORNING", "Evening Batch", "morning", "noon"])

    assert known == [Batch.MORNING, Batch.EVENING]
    assert unknown == ["noon"]


def test_plan_builds_work_items() -> None:
    plan = SchedulingPolicy().plan(
        date(2024, 12, 16), date(2024, 12, 22), ["morning"], {0, 6}, now=NOW
    )

    assert plan.valid
    assert len(plan.work_items) == 5


def test_plan_collects_every_problem() -> None:
    plan = SchedulingPolicy().plan(
        date(2024, 12, 10), date(2024, 12, 1), ["noon"], {9}, now=NOW
    )

    assert not plan.valid
    assert plan.work_items == []
    assert "Invalid batches: noon" in plan.problems
    assert "Start date must be before end date" in plan.problems
    assert any("between 0 and 6" in problem for problem in plan.problems)
    assert any("hours in advance" in problem for problem in plan.problems)


def test_plan_rejects_start_inside_advance_window() -> None:
    plan = SchedulingPolicy().plan(
        date(2024, 12, 10), date(2024, 12, 12), ["morning"], now=NOW
    )

    assert any("at least 2 hours" in problem for problem in plan.problems)


def test_plan_rejects_end_beyond_horizon() -> None:
    plan = SchedulingPolicy().plan(
        date(2025, 3, 9), date(2025, 3, 12), ["morning"], now=NOW
    )

    assert any("more than 90 days" in problem for problem in plan.problems)


def test_plan_rejects_too_many_operations() -> None:
    plan = SchedulingPolicy().plan(
        date(2024, 12, 16),
        date(2025, 1, 31),
        ["morning", "evening"],
        now=NOW,
    )

    assert any("Maximum 50 sessions" in problem for problem in plan.problems)


def test_plan_rejects_fully_excluded_range() -> None:
    plan = SchedulingPolicy().plan(
        date(2024, 12, 21), date(2024, 12, 22), ["weekend"], {0, 6}, now=NOW
    )

    assert plan.problems == ["No dates remain after excluding weekdays"]


def test_plan_checks_advance_window_in_club_timezone() -> None:
    policy = SchedulingPolicy(timezone=ZoneInfo("Asia/Kolkata"))
    late_evening = datetime(2024, 12, 15, 20, 0, tzinfo=UTC)

    plan = policy.plan(
        date(2024, 12, 16), date(2024, 12, 16), ["morning"], now=late_evening
    )

    assert not plan.valid
