"""Per-key streams of normalized records."""

from __future__ import annotations

import logging

from pyskbus._stream import Bus, Stream
from pyskbus.models.records import NormalizedRecord

_logger = logging.getLogger(__name__)


class StreamBundle:
    """Registry of one :class:`Bus` per path.

    Buses are created lazily the first time a path is seen. The new path is
    announced on :meth:`on_new_key` before its first record is pushed, so
    listeners that attach on the announcement receive that record too.
    """

    def __init__(self) -> None:
        self._buses: dict[str, Bus[NormalizedRecord]] = {}
        self._keys: Bus[str] = Bus("keys")

    def push(self, record: NormalizedRecord) -> None:
        self.get_bus(record.path).push(record)

    def get_bus(self, key: str) -> Bus[NormalizedRecord]:
        bus = self._buses.get(key)
        if bus is None:
            bus = Bus(key)
            self._buses[key] = bus
            _logger.debug("New key %s", key)
            self._keys.push(key)
        return bus

    def get_stream(self, key: str) -> Stream[NormalizedRecord]:
        return self.get_bus(key)

    def known_keys(self) -> set[str]:
        return set(self._buses)

    def on_new_key(self) -> Stream[str]:
        return self._keys
