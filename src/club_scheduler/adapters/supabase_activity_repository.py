"""Supabase repository for activity log entries."""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from club_scheduler.services.activity import ActivityRepository


@dataclass
class SupabaseActivityRepository(ActivityRepository):
    """Supabase-backed activity repository."""

    client: Client
    table: str = "activity_log"

    async def create_entry(
        self, action: str, actor: str, details: dict[str, object]
    ) -> None:
        """Create an activity log row."""
        query = self.client.table(self.table).insert(
            {
                "action": action,
                "actor": actor,
                "details": details,
                "timestamp": datetime.now(tz=UTC).isoformat(),
            }
        )
        await asyncio.to_thread(query.execute)
