"""Supabase repository for class sessions."""

import asyncio
from dataclasses import dataclass
from datetime import date

from supabase import Client

from club_scheduler.domain.sessions import (
    NewSession,
    Session,
    SessionCancellation,
    SessionStatus,
)
from club_scheduler.services.sessions import SessionRepository

_COLUMNS = (
    "id, date, batch_name, time, status, capacity, notes, cancellation_reason, "
    "scheduled_by, cancelled_by, created_at, updated_at, cancelled_at"
)


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase-backed session repository.

    The sync client blocks, so every query runs in a worker thread.
    """

    client: Client
    table: str = "classes"

    async def find_sessions(
        self, day: date, batch_name: str, status: SessionStatus
    ) -> list[Session]:
        """Return sessions matching a date, batch and status."""
        query = (
            self.client.table(self.table)
            .select(_COLUMNS)
            .eq("date", day.isoformat())
            .eq("batch_name", batch_name)
            .eq("status", status.value)
        )
        response = await asyncio.to_thread(query.execute)
        return [Session.from_row(row) for row in response.data or []]

    async def list_sessions(
        self,
        start: date,
        end: date,
        batch_names: list[str] | None = None,
        statuses: list[SessionStatus] | None = None,
    ) -> list[Session]:
        """Return sessions in a date range ordered by date and time."""
        query = (
            self.client.table(self.table)
            .select(_COLUMNS)
            .gte("date", start.isoformat())
            .lte("date", end.isoformat())
        )
        if batch_names:
            query = query.in_("batch_name", batch_names)
        if statuses:
            query = query.in_("status", [status.value for status in statuses])
        query = query.order("date", desc=False).order("time", desc=False)
        response = await asyncio.to_thread(query.execute)
        return [Session.from_row(row) for row in response.data or []]

    async def create_session(self, payload: NewSession) -> Session:
        """Create a session row and return it."""
        query = self.client.table(self.table).insert(
            {
                "date": payload.date.isoformat(),
                "batch_name": payload.batch,
                "time": payload.time.strftime("%H:%M"),
                "status": payload.status.value,
                "capacity": payload.capacity,
                "notes": payload.notes,
                "scheduled_by": payload.scheduled_by,
                "created_at": payload.created_at.isoformat(),
                "updated_at": payload.created_at.isoformat(),
            }
        )
        response = await asyncio.to_thread(query.execute)
        if not response.data:
            raise RuntimeError("Failed to create session")
        return Session.from_row(response.data[0])

    async def update_session(
        self, session_id: str, patch: SessionCancellation
    ) -> Session:
        """Apply a cancellation patch and return the updated row."""
        query = (
            self.client.table(self.table)
            .update(
                {
                    "status": patch.status.value,
                    "cancellation_reason": patch.reason,
                    "cancelled_by": patch.cancelled_by,
                    "cancelled_at": patch.cancelled_at.isoformat(),
                    "updated_at": patch.cancelled_at.isoformat(),
                }
            )
            .eq("id", session_id)
        )
        response = await asyncio.to_thread(query.execute)
        if not response.data:
            raise LookupError(f"Session {session_id} not found")
        return Session.from_row(response.data[0])
