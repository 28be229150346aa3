"""Context specifier matching.

A subscription's ``context`` selects which entities it receives data for:

* absent: every context,
* a string: a ``*`` wildcard over context ids; ``"self"`` and
  ``"vessels.self"`` also match the installation's own context,
* ``{"radius": meters, "position": {"latitude": .., "longitude": ..}}``:
  entities whose current ``navigation.position`` lies within the circle.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from pyskbus.ingestion.coerce import safe_float
from pyskbus.models.records import NormalizedRecord, Position
from pyskbus.subscription.interfaces import ContextPredicate, EntitySnapshot, WarnCallback
from pyskbus.subscription.paths import wildcard_to_regex

_logger = logging.getLogger(__name__)

SELF_ALIASES = frozenset({"self", "vessels.self"})

# Same mean radius geolib uses for point-in-circle checks.
EARTH_RADIUS_M = 6_378_137.0


def distance_m(a: Position, b: Position) -> float:
    """Great-circle (haversine) distance between two positions in meters."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)
    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


def _match_all(_record: NormalizedRecord) -> bool:
    return True


def _match_none(_record: NormalizedRecord) -> bool:
    return False


def _string_matcher(self_context: str, specifier: str) -> ContextPredicate:
    regex = wildcard_to_regex(specifier)
    is_self_alias = specifier in SELF_ALIASES

    def _matches(record: NormalizedRecord) -> bool:
        if regex.fullmatch(record.context) is not None:
            return True
        return is_self_alias and record.context == self_context

    return _matches


def _radius_matcher(
    specifier: dict[str, Any],
    on_warn: WarnCallback,
    snapshot: EntitySnapshot | None,
) -> ContextPredicate:
    radius = safe_float(specifier.get("radius"))
    center = Position.from_value(specifier.get("position"))
    if radius is None or center is None:
        message = "Please specify a radius and position for relativePosition"
        _logger.debug("Context %r: %s", specifier, message)
        on_warn(message)
        return _match_none

    def _within(record: NormalizedRecord) -> bool:
        if snapshot is None:
            return False
        position = snapshot.position_of(record.context)
        if position is None:
            return False
        return distance_m(position, center) <= radius

    return _within


def compile_context_matcher(
    self_context: str,
    specifier: Any,
    on_warn: WarnCallback,
    snapshot: EntitySnapshot | None = None,
) -> ContextPredicate:
    """Compile a context specifier into a record predicate.

    Incomplete radius specifiers are reported through *on_warn* and yield a
    predicate that matches nothing.
    """
    if not specifier:
        return _match_all
    if isinstance(specifier, str):
        return _string_matcher(self_context, specifier)
    if isinstance(specifier, dict):
        return _radius_matcher(specifier, on_warn, snapshot)
    on_warn(f"Unsupported context {specifier!r}, matching all contexts")
    return _match_all
