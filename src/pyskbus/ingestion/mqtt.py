"""MQTT ingestion helpers.

Translates raw MQTT payload bytes into delta dicts.
"""

from __future__ import annotations

import json
from typing import Any

from pyskbus.exceptions import DeltaParseError


def decode_mqtt_payload(payload: bytes, *, topic: str = "") -> dict[str, Any]:
    """Decode a UTF-8 JSON delta payload.

    Raises
    ------
    DeltaParseError
        If the payload is not UTF-8 JSON or not a JSON object.
    """
    try:
        parsed = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DeltaParseError(f"MQTT payload on {topic!r} is not JSON", topic=topic) from exc
    if not isinstance(parsed, dict):
        raise DeltaParseError(f"MQTT payload on {topic!r} is not a JSON object", topic=topic)
    return parsed
