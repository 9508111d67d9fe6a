"""Shared test fixtures."""

import pytest

from club_scheduler.config import Settings
from club_scheduler.containers import AppContainer, assemble_container
from club_scheduler.services.activity import ActivityService
from club_scheduler.services.bulk import BulkMutationCoordinator
from club_scheduler.services.conflicts import ConflictDetector
from club_scheduler.services.realtime import SubscriptionMultiplexer
from club_scheduler.services.retry import Retrier, RetryPolicy
from club_scheduler.services.scheduling import SchedulingService
from tests.fakes import (
    FIXED_NOW,
    FakeChangeFeed,
    InMemoryActivityRepository,
    InMemorySessionRepository,
    RecordingSleep,
)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="test.service.key",
        api_token="api-token",
    )


@pytest.fixture
def session_repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def activity_repository() -> InMemoryActivityRepository:
    return InMemoryActivityRepository()


@pytest.fixture
def change_feed() -> FakeChangeFeed:
    return FakeChangeFeed()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retrier(sleep: RecordingSleep) -> Retrier:
    return Retrier(RetryPolicy(), sleep=sleep)


@pytest.fixture
def conflict_detector(
    session_repository: InMemorySessionRepository, retrier: Retrier
) -> ConflictDetector:
    return ConflictDetector(session_repository, retrier)


@pytest.fixture
def coordinator(
    session_repository: InMemorySessionRepository,
    activity_repository: InMemoryActivityRepository,
    conflict_detector: ConflictDetector,
    retrier: Retrier,
) -> BulkMutationCoordinator:
    return BulkMutationCoordinator(
        repository=session_repository,
        conflict_detector=conflict_detector,
        activity_service=ActivityService(activity_repository),
        retrier=retrier,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def multiplexer(change_feed: FakeChangeFeed) -> SubscriptionMultiplexer:
    return SubscriptionMultiplexer(change_feed)


@pytest.fixture
def scheduling_service(
    session_repository: InMemorySessionRepository,
    coordinator: BulkMutationCoordinator,
    conflict_detector: ConflictDetector,
    multiplexer: SubscriptionMultiplexer,
    retrier: Retrier,
) -> SchedulingService:
    return SchedulingService(
        repository=session_repository,
        coordinator=coordinator,
        conflict_detector=conflict_detector,
        multiplexer=multiplexer,
        retrier=retrier,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def container(
    settings: Settings,
    session_repository: InMemorySessionRepository,
    activity_repository: InMemoryActivityRepository,
    change_feed: FakeChangeFeed,
) -> AppContainer:
    return assemble_container(
        settings, session_repository, activity_repository, change_feed
    )
