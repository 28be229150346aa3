"""pyskbus - subscription matching and delivery for live telemetry deltas."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyskbus")
except PackageNotFoundError:
    __version__ = "0+local"
from pyskbus.config import HubConfig
from pyskbus.exceptions import DeltaParseError, SkBusConfigError, SkBusError
from pyskbus.hub import TelemetryHub
from pyskbus.ingestion.normalize import flatten_delta, to_delta
from pyskbus.models import (
    Delta,
    NormalizedRecord,
    PathValue,
    Position,
    SubscribeRow,
    SubscriptionCommand,
    Update,
)
from pyskbus.subscription import ActiveSubscription, SubscriptionManager, SubscriptionState

__all__ = [
    "__version__",
    "ActiveSubscription",
    "Delta",
    "DeltaParseError",
    "HubConfig",
    "NormalizedRecord",
    "PathValue",
    "Position",
    "SkBusConfigError",
    "SkBusError",
    "SubscribeRow",
    "SubscriptionCommand",
    "SubscriptionManager",
    "SubscriptionState",
    "TelemetryHub",
    "Update",
    "flatten_delta",
    "to_delta",
]
