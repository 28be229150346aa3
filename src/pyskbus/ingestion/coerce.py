"""Defensive value coercion shared by models and ingestion."""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def positive_int_or_none(value: Any) -> int | None:
    """Return ``value`` as a positive int, or ``None`` for anything else.

    Zero, negative, non-numeric and missing values all mean "not set".
    """
    parsed = safe_float(value)
    if parsed is None or parsed <= 0:
        return None
    return max(int(parsed), 1)


def env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default
