"""Subscription command models.

These mirror the JSON subscribe message::

    {
        "context": "vessels.self",
        "subscribe": [
            {"path": "navigation.*", "minPeriod": 1000},
            {"path": "environment.wind.*", "period": 5000, "policy": "fixed"},
        ],
    }

``policy`` and ``format`` are kept as plain strings: unsupported values are
reported as warnings by the policy stage rather than rejected here.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from pyskbus.ingestion.coerce import positive_int_or_none


class SubscribeRow(BaseModel):
    """One (path pattern, delivery policy) pair of a subscription command."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    path: str = ""
    period: int | None = None
    min_period: int | None = None
    policy: str | None = None
    format: str | None = None

    @field_validator("period", "min_period", mode="before")
    @classmethod
    def _positive_or_absent(cls, value: Any) -> int | None:
        return positive_int_or_none(value)

    @field_validator("policy", "format", mode="before")
    @classmethod
    def _blank_is_absent(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value)
        return text or None


class SubscriptionCommand(BaseModel):
    """A subscribe message: a context specifier and ordered rows.

    ``context`` is either a wildcard string or a mapping
    ``{"radius": <meters>, "position": {"latitude": .., "longitude": ..}}``.
    It is kept as-is so the context matcher can report unusable specifiers.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    context: Any = None
    subscribe: list[SubscribeRow] = Field(default_factory=list)

    @field_validator("context", mode="before")
    @classmethod
    def _empty_context_is_absent(cls, value: Any) -> Any:
        if value == "" or value == {}:
            return None
        return value

    @classmethod
    def from_message(cls, payload: Any, on_warn: Callable[[str], None]) -> SubscriptionCommand:
        """Build a command from a decoded subscribe message without raising.

        Rows that do not validate are reported through *on_warn* and skipped;
        a ``subscribe`` value that is not a list yields no rows.
        """
        if isinstance(payload, SubscriptionCommand):
            return payload
        if not isinstance(payload, dict):
            on_warn(f"Ignoring subscribe message that is not an object: {payload!r}")
            return cls()

        raw_rows = payload.get("subscribe")
        rows: list[SubscribeRow] = []
        if isinstance(raw_rows, list):
            for index, raw_row in enumerate(raw_rows):
                try:
                    rows.append(SubscribeRow.model_validate(raw_row))
                except ValidationError:
                    on_warn(f"Ignoring invalid subscribe row {index}: {raw_row!r}")
        elif raw_rows is not None:
            on_warn(f"subscribe must be a list of rows, got {raw_rows!r}")
        return cls(context=payload.get("context"), subscribe=rows)
