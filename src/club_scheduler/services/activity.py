"""Activity logging service."""

import logging
from dataclasses import dataclass
from typing import Protocol

_logger = logging.getLogger(__name__)


class ActivityRepository(Protocol):
    """Persistence interface for activity log entries."""

    async def create_entry(
        self, action: str, actor: str, details: dict[str, object]
    ) -> None:
        """Create an activity log row."""


@dataclass
class ActivityService:
    """Service for recording audit entries for bulk operations."""

    repository: ActivityRepository

    async def record(
        self, action: str, actor: str, details: dict[str, object]
    ) -> bool:
        """Persist an activity entry; a failed write never fails the caller."""
        try:
            await self.repository.create_entry(
                action=action[:100], actor=actor, details=details
            )
        except Exception:
            _logger.exception("Failed to log activity %s", action)
            return False
        return True
