"""Custom exception hierarchy for pyskbus.

Subscription handling itself never raises: anomalies in subscribe commands
are reported through the caller's ``on_warn`` callback. These exceptions are
used at the edges only.
"""

from __future__ import annotations


class SkBusError(Exception):
    """Base exception for all pyskbus errors."""


class SkBusConfigError(SkBusError):
    """Invalid or missing configuration."""


class DeltaParseError(SkBusError):
    """Inbound payload could not be parsed into a delta."""

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)
