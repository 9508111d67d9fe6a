"""Tests for Supabase adapter implementations."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time

import pytest

from club_scheduler.adapters.supabase_activity_repository import (
    SupabaseActivityRepository,
)
from club_scheduler.adapters.supabase_change_feed import SupabaseChangeFeed
from club_scheduler.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from club_scheduler.domain.sessions import (
    NewSession,
    SessionCancellation,
    SessionStatus,
)
from tests.fakes import FakeSupabaseClient

ROW = {
    "id": "7",
    "date": "2024-12-16",
    "batch_name": "Morning Batch",
    "time": "09:00",
    "status": "scheduled",
    "capacity": 15,
    "notes": "",
    "scheduled_by": "coach",
    "created_at": "2024-12-10T09:00:00+00:00",
}


def test_session_repository_find_sessions() -> None:
    client = FakeSupabaseClient()
    client.table("classes").queue("select", [ROW])
    repo = SupabaseSessionRepository(client)

    sessions = asyncio.run(
        repo.find_sessions(date(2024, 12, 16), "Morning Batch", SessionStatus.SCHEDULED)
    )

    assert sessions[0].id == "7"
    assert sessions[0].time == time(9, 0)
    assert sessions[0].created_at == datetime(2024, 12, 10, 9, 0, tzinfo=UTC)
    assert client.tables["classes"].last_filters == [
        ("eq", "date", "2024-12-16"),
        ("eq", "batch_name", "Morning Batch"),
        ("eq", "status", "scheduled"),
    ]


def test_session_repository_list_sessions_applies_filters() -> None:
    client = FakeSupabaseClient()
    client.table("sessions").queue("select", [ROW])
    repo = SupabaseSessionRepository(client, table="sessions")

    sessions = asyncio.run(
        repo.list_sessions(
            date(2024, 12, 1),
            date(2024, 12, 31),
            ["Morning Batch"],
            [SessionStatus.SCHEDULED, SessionStatus.CANCELLED],
        )
    )

    table = client.tables["sessions"]
    assert len(sessions) == 1
    assert table.last_filters == [
        ("gte", "date", "2024-12-01"),
        ("lte", "date", "2024-12-31"),
        ("in", "batch_name", ["Morning Batch"]),
        ("in", "status", ["scheduled", "cancelled"]),
    ]
    assert table.orders == ["date", "time"]


def test_session_repository_create_session() -> None:
    client = FakeSupabaseClient()
    client.table("classes").queue("insert", [ROW])
    repo = SupabaseSessionRepository(client)
    payload = NewSession(
        date=date(2024, 12, 16),
        batch="Morning Batch",
        time=time(9, 0),
        capacity=15,
        scheduled_by="coach",
        notes="",
        created_at=datetime(2024, 12, 10, 9, 0, tzinfo=UTC),
    )

    session = asyncio.run(repo.create_session(payload))

    assert session.status is SessionStatus.SCHEDULED
    inserted = client.tables["classes"].last_payload
    assert inserted["batch_name"] == "Morning Batch"
    assert inserted["time"] == "09:00"
    assert inserted["status"] == "scheduled"


def test_session_repository_create_without_row_raises() -> None:
    repo = SupabaseSessionRepository(FakeSupabaseClient())
    payload = NewSession(
        date=date(2024, 12, 16),
        batch="Morning Batch",
        time=time(9, 0),
        capacity=15,
        scheduled_by="coach",
        notes="",
        created_at=datetime(2024, 12, 10, 9, 0, tzinfo=UTC),
    )

    with pytest.raises(RuntimeError):
        asyncio.run(repo.create_session(payload))


def test_session_repository_update_session() -> None:
    client = FakeSupabaseClient()
    client.table("classes").queue(
        "update",
        [{**ROW, "status": "cancelled", "cancellation_reason": "Holiday"}],
    )
    repo = SupabaseSessionRepository(client)
    patch = SessionCancellation(
        cancelled_by="coach",
        reason="Holiday",
        cancelled_at=datetime(2024, 12, 11, 8, 0, tzinfo=UTC),
    )

    session = asyncio.run(repo.update_session("7", patch))

    table = client.tables["classes"]
    assert session.status is SessionStatus.CANCELLED
    assert session.cancellation_reason == "Holiday"
    assert table.last_payload["cancelled_at"] == "2024-12-11T08:00:00+00:00"
    assert table.last_filters == [("eq", "id", "7")]


def test_activity_repository_create_entry() -> None:
    client = FakeSupabaseClient()
    repo = SupabaseActivityRepository(client)

    asyncio.run(repo.create_entry("sessions_scheduled", "coach", {"count": 5}))

    payload = client.tables["activity_log"].last_payload
    assert payload["action"] == "sessions_scheduled"
    assert payload["actor"] == "coach"
    assert payload["details"] == {"count": 5}
    assert "timestamp" in payload


@dataclass
class FakeChannel:
    name: str
    callbacks: list[object] = field(default_factory=list)
    filters: list[dict[str, object]] = field(default_factory=list)
    subscribed: bool = False

    def on_postgres_changes(  # type: ignore[no-untyped-def]
        self, event: str, callback, table: str = "*", schema: str = "public"
    ) -> "FakeChannel":
        self.filters.append({"event": event, "table": table, "schema": schema})
        self.callbacks.append(callback)
        return self

    async def subscribe(self) -> "FakeChannel":
        self.subscribed = True
        return self


@dataclass
class FakeAsyncClient:
    channels: list[FakeChannel] = field(default_factory=list)
    removed: list[FakeChannel] = field(default_factory=list)

    def channel(self, name: str) -> FakeChannel:
        channel = FakeChannel(name)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel: FakeChannel) -> None:
        self.removed.append(channel)


def test_change_feed_opens_postgres_changes_channel() -> None:
    client = FakeAsyncClient()
    created: list[int] = []

    async def factory() -> FakeAsyncClient:
        created.append(1)
        return client

    feed = SupabaseChangeFeed(client_factory=factory)
    received: list[dict[str, object]] = []

    async def on_event(payload: dict[str, object]) -> None:
        received.append(payload)

    async def scenario() -> None:
        stream = await feed.open("classes", on_event)
        await feed.open("activity_log", on_event)
        client.channels[0].callbacks[0]({"data": {"type": "INSERT"}})
        await stream.close()

    asyncio.run(scenario())

    assert len(created) == 1
    assert client.channels[0].name == "public:classes"
    assert client.channels[0].subscribed is True
    assert client.channels[0].filters == [
        {"event": "*", "table": "classes", "schema": "public"}
    ]
    assert received == [{"data": {"type": "INSERT"}}]
    assert client.removed == [client.channels[0]]
