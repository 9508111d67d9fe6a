"""Persistence interface for class sessions."""

from datetime import date
from typing import Protocol

from club_scheduler.domain.sessions import (
    NewSession,
    Session,
    SessionCancellation,
    SessionStatus,
)


class SessionRepository(Protocol):
    """Remote store access for sessions."""

    async def find_sessions(
        self, day: date, batch_name: str, status: SessionStatus
    ) -> list[Session]:
        """Return sessions matching a date, batch and status."""

    async def list_sessions(
        self,
        start: date,
        end: date,
        batch_names: list[str] | None = None,
        statuses: list[SessionStatus] | None = None,
    ) -> list[Session]:
        """Return sessions in a date range ordered by date and time."""

    async def create_session(self, payload: NewSession) -> Session:
        """Create a session and return it with its store-assigned id."""

    async def update_session(
        self, session_id: str, patch: SessionCancellation
    ) -> Session:
        """Apply a cancellation patch and return the updated session."""
