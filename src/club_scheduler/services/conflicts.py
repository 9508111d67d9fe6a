"""Advisory conflict detection against scheduled sessions."""

from dataclasses import dataclass

from club_scheduler.domain.results import Err, Ok, Outcome
from club_scheduler.domain.sessions import (
    Conflict,
    ConflictReport,
    SessionStatus,
    WorkItem,
)
from club_scheduler.services.retry import Retrier
from club_scheduler.services.sessions import SessionRepository


@dataclass
class ConflictDetector:
    """Check requested slots against sessions already scheduled.

    The check holds no lock, so a concurrent bulk call can still insert a
    duplicate between this check and the create.
    """

    repository: SessionRepository
    retrier: Retrier

    async def check(self, work_items: list[WorkItem]) -> Outcome[ConflictReport]:
        """Return one conflict per work item that already has a session."""
        conflicts: list[Conflict] = []
        for item in work_items:
            outcome = await self.retrier.run(
                lambda item=item: self.repository.find_sessions(
                    item.date, item.batch_name, SessionStatus.SCHEDULED
                ),
                "check_scheduling_conflicts",
            )
            if isinstance(outcome, Err):
                return outcome
            if outcome.value:
                conflicts.append(
                    Conflict(
                        date=item.date,
                        batch=item.batch_name,
                        existing_session=outcome.value[0],
                    )
                )
        return Ok(ConflictReport(conflicts=conflicts))
