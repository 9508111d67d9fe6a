"""Batch catalog for recurring class groups."""

from dataclasses import dataclass
from datetime import time
from enum import Enum


@dataclass(frozen=True)
class BatchConfig:
    """Declarative batch definition."""

    id: str
    name: str
    default_time: time
    color: str
    capacity: int


class Batch(Enum):
    """Enum of class batches (single source of truth)."""

    MORNING = BatchConfig("morning", "Morning Batch", time(9, 0), "orange", 15)
    EVENING = BatchConfig("evening", "Evening Batch", time(18, 0), "purple", 12)
    WEEKEND = BatchConfig("weekend", "Weekend Batch", time(10, 0), "blue", 20)

    @classmethod
    def lookup(cls, value: str) -> "Batch | None":
        """Return the batch for an id (any case) or display name."""
        cleaned = value.strip().lower()
        for entry in cls:
            if cleaned in {entry.value.id, entry.value.name.lower()}:
                return entry
        return None


def batch_catalog() -> list[dict[str, object]]:
    """Return the batch catalog formatted for API responses."""
    return [
        {
            "id": entry.value.id,
            "name": entry.value.name,
            "default_time": entry.value.default_time.strftime("%H:%M"),
            "color": entry.value.color,
            "capacity": entry.value.capacity,
        }
        for entry in Batch
    ]
