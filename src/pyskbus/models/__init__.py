"""Typed data models for the telemetry bus."""

from pyskbus.models.delta import Delta, PathValue, Update
from pyskbus.models.records import NormalizedRecord, Position
from pyskbus.models.subscription import SubscribeRow, SubscriptionCommand

__all__ = [
    "Delta",
    "NormalizedRecord",
    "PathValue",
    "Position",
    "SubscribeRow",
    "SubscriptionCommand",
    "Update",
]
