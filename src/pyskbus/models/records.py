"""Flattened telemetry records."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pyskbus.ingestion.coerce import safe_float


class NormalizedRecord(BaseModel):
    """One value for one path of one context, as received from a source.

    Parameters
    ----------
    context : str
        Entity the value belongs to (e.g. ``"vessels.urn:mrn:imo:mmsi:230099999"``).
    source : str
        Source identifier (``$source``), e.g. ``"n2k.115"``.
    path : str
        Dotted key, e.g. ``"navigation.speedOverGround"``.
    value : Any
        The value as received.
    timestamp : datetime
        Timestamp of the update, always timezone aware.
    """

    model_config = ConfigDict(frozen=True)

    context: str
    source: str = ""
    path: str
    value: Any = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("timestamp")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def identity(self) -> str:
        """Deduplication key used by fixed-interval policies."""
        return f"{self.context}:{self.source}:{self.path}"


class Position(BaseModel):
    """A WGS84 position in degrees."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    latitude: float
    longitude: float

    @classmethod
    def from_value(cls, value: Any) -> Position | None:
        """Build a position from a ``navigation.position`` style value.

        Returns ``None`` when either coordinate is missing or not numeric.
        """
        if not isinstance(value, dict):
            return None
        latitude = safe_float(value.get("latitude"))
        longitude = safe_float(value.get("longitude"))
        if latitude is None or longitude is None:
            return None
        return cls(latitude=latitude, longitude=longitude)
