"""Current value per entity and path.

The full model answers "where is this entity now?" for geofenced
subscriptions. Out-of-order updates never move a value back in time.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict

from pyskbus.models.records import NormalizedRecord, Position

POSITION_PATH = "navigation.position"


class PathValueSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: Any
    timestamp: datetime
    source: str


def should_accept_update(
    *,
    cached_timestamp: datetime | None,
    incoming_timestamp: datetime,
    skew_allowance: timedelta,
) -> bool:
    """Accept an update unless it is older than the cached one by more than the allowance."""
    if cached_timestamp is None:
        return True
    return incoming_timestamp >= cached_timestamp - skew_allowance


class FullModel:
    """In-memory model of the latest value of every path per context."""

    def __init__(self, *, skew_allowance: timedelta = timedelta(0)) -> None:
        self._skew_allowance = skew_allowance
        self._entities: dict[str, dict[str, PathValueSnapshot]] = {}

    def apply(self, record: NormalizedRecord) -> bool:
        """Merge *record*. Returns ``False`` when it was rejected as stale."""
        paths = self._entities.setdefault(record.context, {})
        cached = paths.get(record.path)
        if not should_accept_update(
            cached_timestamp=cached.timestamp if cached is not None else None,
            incoming_timestamp=record.timestamp,
            skew_allowance=self._skew_allowance,
        ):
            return False
        paths[record.path] = PathValueSnapshot(value=record.value, timestamp=record.timestamp, source=record.source)
        return True

    def get(self, context: str, path: str) -> Any:
        snapshot = self._entities.get(context, {}).get(path)
        return snapshot.value if snapshot is not None else None

    def contexts(self) -> set[str]:
        return set(self._entities)

    def position_of(self, context: str) -> Position | None:
        return Position.from_value(self.get(context, POSITION_PATH))

    def remove_context(self, context: str) -> None:
        self._entities.pop(context, None)
