"""Real-time change subscriptions multiplexed per collection."""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Protocol

from club_scheduler.domain.errors import ClassifiedFailure
from club_scheduler.domain.events import ALL_EVENTS, ChangeEvent, EventType
from club_scheduler.services.errors import classify_error

_logger = logging.getLogger(__name__)

EventCallback = Callable[[ChangeEvent], Awaitable[None] | None]
RawEventHandler = Callable[[Mapping[str, object]], Awaitable[None]]
Unsubscribe = Callable[[], Awaitable[None]]

_EVENT_ALIASES = {
    "insert": EventType.CREATE,
    "create": EventType.CREATE,
    "update": EventType.UPDATE,
    "delete": EventType.DELETE,
}


class ChangeStream(Protocol):
    """Handle for one open change stream."""

    async def close(self) -> None:
        """Stop receiving events."""


class ChangeFeed(Protocol):
    """Source of raw change events for store collections."""

    async def open(self, collection: str, on_event: RawEventHandler) -> ChangeStream:
        """Open a change stream delivering raw events to ``on_event``."""


@dataclass
class _Listener:
    callback: EventCallback
    events: frozenset[EventType]


@dataclass
class _Subscription:
    stream: ChangeStream
    listeners: list[_Listener] = field(default_factory=list)


class SubscriptionMultiplexer:
    """Owns one change stream per collection and fans events out to listeners.

    Each collection also gets an in-memory mirror keyed by document id that
    only this object writes to.
    """

    def __init__(self, change_feed: ChangeFeed) -> None:
        self._change_feed = change_feed
        self._subscriptions: dict[str, _Subscription] = {}
        self._mirrors: dict[str, dict[str, dict[str, object]]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(
        self,
        collection: str,
        callback: EventCallback,
        events: Iterable[EventType | str] = ALL_EVENTS,
    ) -> Unsubscribe:
        """Register a callback and return a coroutine function that unsubscribes."""
        listener = _Listener(callback=callback, events=_parse_event_filter(events))
        async with self._lock:
            subscription = self._subscriptions.get(collection)
            if subscription is None:
                _logger.info("Subscribing to real-time updates for %s", collection)
                try:
                    stream = await self._change_feed.open(
                        collection, lambda raw: self.dispatch(collection, raw)
                    )
                except Exception as exc:
                    raise ClassifiedFailure(
                        classify_error(exc, f"subscribe_to_{collection}")
                    ) from exc
                subscription = _Subscription(stream=stream)
                self._subscriptions[collection] = subscription
                self._mirrors.setdefault(collection, {})
            subscription.listeners.append(listener)

        async def unsubscribe() -> None:
            await self.unsubscribe(collection)

        return unsubscribe

    async def unsubscribe(self, collection: str) -> None:
        """Close the collection's stream and drop its listeners; no-op if absent."""
        async with self._lock:
            subscription = self._subscriptions.pop(collection, None)
            self._mirrors.pop(collection, None)
        if subscription is None:
            return
        try:
            await subscription.stream.close()
        except Exception:
            _logger.exception("Failed to unsubscribe from %s", collection)
        else:
            _logger.info("Unsubscribed from %s", collection)

    async def unsubscribe_all(self) -> None:
        """Unsubscribe from every collection."""
        for collection in list(self._subscriptions):
            await self.unsubscribe(collection)

    def status(self) -> dict[str, object]:
        """Return active collections and counts."""
        return {
            "active_collections": sorted(self._subscriptions),
            "subscription_count": len(self._subscriptions),
            "listener_count": sum(
                len(subscription.listeners)
                for subscription in self._subscriptions.values()
            ),
        }

    def snapshot(self, collection: str) -> list[Mapping[str, object]]:
        """Return the mirrored documents of a collection."""
        mirror = self._mirrors.get(collection, {})
        return [MappingProxyType(document) for document in mirror.values()]

    def get(self, collection: str, document_id: str) -> Mapping[str, object] | None:
        """Return one mirrored document, if present."""
        document = self._mirrors.get(collection, {}).get(document_id)
        return MappingProxyType(document) if document is not None else None

    async def dispatch(self, collection: str, raw: Mapping[str, object]) -> None:
        """Normalize a raw event, update the mirror and notify listeners."""
        subscription = self._subscriptions.get(collection)
        if subscription is None:
            return
        parsed = parse_change_event(raw)
        if parsed is None:
            _logger.warning("Ignoring unrecognized event for %s: %s", collection, raw)
            return
        event_type, document = parsed
        self._apply_to_mirror(collection, event_type, document)
        event = ChangeEvent(
            collection=collection,
            event_type=event_type,
            document=document,
            timestamp=datetime.now(tz=UTC),
        )
        for listener in list(subscription.listeners):
            if event_type not in listener.events:
                continue
            try:
                result = listener.callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                _logger.exception(
                    "Error processing real-time update for %s", collection
                )

    def _apply_to_mirror(
        self, collection: str, event_type: EventType, document: dict[str, object]
    ) -> None:
        mirror = self._mirrors.get(collection)
        document_id = document.get("id") or document.get("$id")
        if mirror is None or document_id is None:
            return
        if event_type is EventType.DELETE:
            mirror.pop(str(document_id), None)
        else:
            mirror[str(document_id)] = dict(document)


def parse_change_event(
    raw: Mapping[str, object],
) -> tuple[EventType, dict[str, object]] | None:
    """Extract the event type and document from a raw change payload.

    Understands Supabase postgres-change payloads (``data.type`` with
    ``record``/``old_record``), flat ``eventType``/``new``/``old`` payloads,
    and dotted ``events`` names whose last segment is the event kind.
    """
    data = raw.get("data")
    body: Mapping[str, object] = data if isinstance(data, Mapping) else raw

    kind = body.get("type") or body.get("eventType")
    if not kind:
        events = raw.get("events")
        if isinstance(events, list | tuple) and events:
            kind = str(events[0]).rsplit(".", 1)[-1]
    event_type = _EVENT_ALIASES.get(str(kind or "").lower())
    if event_type is None:
        return None

    if event_type is EventType.DELETE:
        keys = ("old_record", "old", "record", "new", "payload")
    else:
        keys = ("record", "new", "payload")
    for key in keys:
        document = body.get(key)
        if isinstance(document, Mapping) and document:
            return event_type, dict(document)
    return event_type, {}


def _parse_event_filter(events: Iterable[EventType | str]) -> frozenset[EventType]:
    parsed = set()
    for event in events:
        if isinstance(event, EventType):
            parsed.add(event)
            continue
        alias = _EVENT_ALIASES.get(event.lower())
        if alias is None:
            raise ValueError(f"Unknown event type: {event}")
        parsed.add(alias)
    return frozenset(parsed)
