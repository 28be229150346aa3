"""Collaborators the subscription manager reads from."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from pyskbus._stream import Stream
from pyskbus.models.records import NormalizedRecord, Position

ContextPredicate = Callable[[NormalizedRecord], bool]
WarnCallback = Callable[[str], None]
RecordCallback = Callable[[NormalizedRecord], None]


class KeyRegistry(Protocol):
    def get_stream(self, key: str) -> Stream[NormalizedRecord]: ...

    def known_keys(self) -> set[str]: ...

    def on_new_key(self) -> Stream[str]: ...


class ReplaySource(Protocol):
    def recent_for(self, principal: Any, context_predicate: ContextPredicate, key: str) -> list[NormalizedRecord]: ...


class EntitySnapshot(Protocol):
    def position_of(self, context: str) -> Position | None: ...
