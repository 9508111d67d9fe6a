"""Domain models for change events."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class EventType(Enum):
    """Kinds of document change."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


ALL_EVENTS: frozenset[EventType] = frozenset(EventType)


@dataclass(frozen=True)
class ChangeEvent:
    """Normalized change notification delivered to subscribers."""

    collection: str
    event_type: EventType
    document: dict[str, object]
    timestamp: datetime

    def to_dict(self) -> dict[str, object]:
        return {
            "collection": self.collection,
            "event_type": self.event_type.value,
            "document": self.document,
            "timestamp": self.timestamp.isoformat(),
        }
