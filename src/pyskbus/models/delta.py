"""Inbound delta wire format."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PathValue(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    path: str = ""
    value: Any = None


class Update(BaseModel):
    """One update block: a source, a timestamp and its values."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    source_ref: str | None = Field(default=None, alias="$source")
    source: dict[str, Any] | None = None
    timestamp: datetime | None = None
    values: list[PathValue] = Field(default_factory=list)

    @property
    def source_id(self) -> str:
        """``$source`` when present, else derived from the ``source`` object."""
        if self.source_ref:
            return self.source_ref
        if not self.source:
            return ""
        label = str(self.source.get("label") or "")
        for key in ("src", "pgn", "talker"):
            detail = self.source.get(key)
            if detail not in (None, ""):
                return f"{label}.{detail}" if label else str(detail)
        return label


class Delta(BaseModel):
    """A delta message carrying updates for one context."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    context: str | None = None
    updates: list[Update] = Field(default_factory=list)
