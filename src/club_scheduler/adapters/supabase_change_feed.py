"""Supabase Realtime change feed over postgres-changes channels."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from supabase import AsyncClient, acreate_client

from club_scheduler.services.realtime import ChangeFeed, ChangeStream, RawEventHandler

_logger = logging.getLogger(__name__)

ClientFactory = Callable[[], Awaitable[AsyncClient]]


@dataclass
class SupabaseChangeStream(ChangeStream):
    """One subscribed realtime channel."""

    client: AsyncClient
    channel: object
    pending: set[asyncio.Task[None]] = field(default_factory=set)

    async def close(self) -> None:
        """Remove the channel and wait for in-flight dispatches."""
        await self.client.remove_channel(self.channel)
        if self.pending:
            await asyncio.gather(*self.pending, return_exceptions=True)


@dataclass
class SupabaseChangeFeed(ChangeFeed):
    """Opens one postgres-changes channel per table.

    Realtime needs the async client, which is created on first use.
    """

    client_factory: ClientFactory
    schema: str = "public"
    _client: AsyncClient | None = field(default=None, init=False)

    @classmethod
    def create(cls, url: str, key: str) -> "SupabaseChangeFeed":
        async def factory() -> AsyncClient:
            return await acreate_client(url, key)

        return cls(client_factory=factory)

    async def open(self, collection: str, on_event: RawEventHandler) -> ChangeStream:
        """Subscribe to every change on ``collection``."""
        client = await self._get_client()
        pending: set[asyncio.Task[None]] = set()

        def handle(payload: dict[str, object]) -> None:
            task = asyncio.create_task(on_event(payload))
            pending.add(task)
            task.add_done_callback(pending.discard)

        channel = client.channel(f"{self.schema}:{collection}")
        channel.on_postgres_changes(
            "*", schema=self.schema, table=collection, callback=handle
        )
        await channel.subscribe()
        _logger.info("Opened realtime channel for %s", collection)
        return SupabaseChangeStream(client=client, channel=channel, pending=pending)

    async def _get_client(self) -> AsyncClient:
        if self._client is None:
            self._client = await self.client_factory()
        return self._client
