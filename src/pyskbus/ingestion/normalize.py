"""Delta flattening.

A delta carries several updates, each with several path/value pairs. The
subscription layer works on one :class:`NormalizedRecord` per value.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from pyskbus.exceptions import DeltaParseError
from pyskbus.models.delta import Delta
from pyskbus.models.records import NormalizedRecord


def parse_delta(payload: Delta | dict[str, Any]) -> Delta:
    """Validate a delta payload.

    Raises
    ------
    DeltaParseError
        If *payload* does not have the shape of a delta.
    """
    if isinstance(payload, Delta):
        return payload
    try:
        return Delta.model_validate(payload)
    except ValidationError as exc:
        raise DeltaParseError(f"Invalid delta: {exc.error_count()} validation error(s)") from exc


def flatten_delta(delta: Delta, *, default_context: str) -> list[NormalizedRecord]:
    """Flatten *delta* into one record per value, in payload order.

    Deltas without a context belong to *default_context*; updates without a
    timestamp are stamped with the current time.
    """
    context = delta.context or default_context
    records: list[NormalizedRecord] = []
    for update in delta.updates:
        timestamp = update.timestamp or datetime.now(UTC)
        source = update.source_id
        for path_value in update.values:
            records.append(
                NormalizedRecord(
                    context=context,
                    source=source,
                    path=path_value.path,
                    value=path_value.value,
                    timestamp=timestamp,
                )
            )
    return records


def to_delta(record: NormalizedRecord) -> dict[str, Any]:
    """Render *record* as a single-value delta for output."""
    return {
        "context": record.context,
        "updates": [
            {
                "$source": record.source,
                "timestamp": record.timestamp.isoformat().replace("+00:00", "Z"),
                "values": [{"path": record.path, "value": record.value}],
            }
        ],
    }
