"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from club_scheduler.adapters.supabase_activity_repository import (
    SupabaseActivityRepository,
)
from club_scheduler.adapters.supabase_change_feed import SupabaseChangeFeed
from club_scheduler.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from club_scheduler.config import Settings
from club_scheduler.services.activity import ActivityRepository, ActivityService
from club_scheduler.services.bulk import BulkMutationCoordinator
from club_scheduler.services.conflicts import ConflictDetector
from club_scheduler.services.dates import SchedulingPolicy
from club_scheduler.services.realtime import ChangeFeed, SubscriptionMultiplexer
from club_scheduler.services.retry import Retrier, RetryPolicy
from club_scheduler.services.scheduling import SchedulingService
from club_scheduler.services.sessions import SessionRepository


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    scheduling_service: SchedulingService
    multiplexer: SubscriptionMultiplexer
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_repository = SupabaseSessionRepository(
        supabase_client, table=resolved_settings.sessions_table
    )
    activity_repository = SupabaseActivityRepository(
        supabase_client, table=resolved_settings.activity_table
    )
    change_feed = SupabaseChangeFeed.create(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    return assemble_container(
        resolved_settings, session_repository, activity_repository, change_feed
    )


def assemble_container(
    settings: Settings,
    session_repository: SessionRepository,
    activity_repository: ActivityRepository,
    change_feed: ChangeFeed,
) -> AppContainer:
    """Wire services around already-built adapters."""
    retrier = Retrier(
        RetryPolicy(
            max_retries=settings.retry_max_retries,
            base_delay_ms=settings.retry_base_delay_ms,
        )
    )
    conflict_detector = ConflictDetector(session_repository, retrier)
    coordinator = BulkMutationCoordinator(
        repository=session_repository,
        conflict_detector=conflict_detector,
        activity_service=ActivityService(activity_repository),
        retrier=retrier,
    )
    multiplexer = SubscriptionMultiplexer(change_feed)
    scheduling_service = SchedulingService(
        repository=session_repository,
        coordinator=coordinator,
        conflict_detector=conflict_detector,
        multiplexer=multiplexer,
        retrier=retrier,
        policy=SchedulingPolicy(timezone=settings.timezone),
        sessions_collection=settings.sessions_table,
    )

    async def close_resources() -> None:
        scheduling_service.cancel_inflight()
        await multiplexer.unsubscribe_all()

    return AppContainer(
        settings=settings,
        scheduling_service=scheduling_service,
        multiplexer=multiplexer,
        close_resources=close_resources,
    )
