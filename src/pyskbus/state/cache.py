"""Most recent value per (context, path, source), used for replay."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pyskbus.models.records import NormalizedRecord
from pyskbus.subscription.interfaces import ContextPredicate

_logger = logging.getLogger(__name__)

ReadFilter = Callable[[Any, NormalizedRecord], bool]
"""``(principal, record) -> bool``: whether *principal* may read *record*."""


class DeltaCache:
    """Cache of the latest record for every context/path/source.

    Parameters
    ----------
    read_filter : callable, optional
        Visibility check applied to replayed records. When omitted every
        principal sees every cached record.
    """

    def __init__(self, *, read_filter: ReadFilter | None = None) -> None:
        self._read_filter = read_filter
        # path -> identity -> record; dicts keep first-seen order.
        self._by_path: dict[str, dict[tuple[str, str], NormalizedRecord]] = {}

    def apply(self, record: NormalizedRecord) -> None:
        entries = self._by_path.setdefault(record.path, {})
        entries[(record.context, record.source)] = record

    def recent_for(self, principal: Any, context_predicate: ContextPredicate, key: str) -> list[NormalizedRecord]:
        entries = self._by_path.get(key)
        if not entries:
            return []
        result: list[NormalizedRecord] = []
        for record in entries.values():
            if not context_predicate(record):
                continue
            if self._read_filter is not None and not self._read_filter(principal, record):
                continue
            result.append(record)
        return result

    def remove_context(self, context: str) -> int:
        """Drop every cached record of *context*. Returns the number removed."""
        removed = 0
        for path in list(self._by_path):
            entries = self._by_path[path]
            for identity in [identity for identity in entries if identity[0] == context]:
                del entries[identity]
                removed += 1
            if not entries:
                del self._by_path[path]
        if removed:
            _logger.debug("Removed %d cached values for context=%s", removed, context)
        return removed

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._by_path.values())
