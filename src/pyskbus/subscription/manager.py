"""Subscription manager.

Owns the lifecycle of subscribe commands: every command becomes an
:class:`ActiveSubscription` attached to the key streams its rows match, now
and as new keys appear, until the caller releases it.
"""

from __future__ import annotations

import enum
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pyskbus._stream import Scheduler, Unsubscribe
from pyskbus.models.records import NormalizedRecord
from pyskbus.models.subscription import SubscribeRow, SubscriptionCommand
from pyskbus.subscription.context import compile_context_matcher
from pyskbus.subscription.interfaces import (
    ContextPredicate,
    EntitySnapshot,
    KeyRegistry,
    RecordCallback,
    ReplaySource,
    WarnCallback,
)
from pyskbus.subscription.paths import compile_path_matcher
from pyskbus.subscription.policy import DEFAULT_PERIOD_MS, PolicyKind, select_policy, wrap_with_policy

_logger = logging.getLogger(__name__)


class SubscriptionState(enum.StrEnum):
    ACTIVE = "active"
    DETACHED = "detached"


@dataclass(frozen=True, slots=True)
class _CompiledRow:
    index: int
    row: SubscribeRow
    matches: Callable[[str], bool]
    policy: PolicyKind


class ActiveSubscription:
    """Runtime state of one subscribe command.

    Use :meth:`release` to detach it. Releasing is idempotent.
    """

    def __init__(
        self,
        *,
        subscription_id: int,
        registry: KeyRegistry,
        replay: ReplaySource | None,
        scheduler: Scheduler,
        context_predicate: ContextPredicate,
        rows: list[SubscribeRow],
        on_warn: WarnCallback,
        on_record: RecordCallback,
        principal: Any,
        default_period_ms: int,
        on_release: Callable[[ActiveSubscription], None] | None = None,
    ) -> None:
        self.id = subscription_id
        self._registry = registry
        self._replay = replay
        self._scheduler = scheduler
        self._context_predicate = context_predicate
        self._rows = [
            _CompiledRow(
                index=index,
                row=row,
                matches=compile_path_matcher(row.path),
                policy=select_policy(row, on_warn),
            )
            for index, row in enumerate(rows)
            if row.path
        ]
        self._on_warn = on_warn
        self._on_record = on_record
        self._principal = principal
        self._default_period_ms = default_period_ms
        self._on_release = on_release
        self._handles: list[Unsubscribe] = []
        self._attached: set[tuple[int, str]] = set()
        self._state = SubscriptionState.ACTIVE

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SubscriptionState.ACTIVE

    @property
    def attached_keys(self) -> set[str]:
        """Keys this subscription currently listens to (over all rows)."""
        return {key for _, key in self._attached}

    @property
    def handle_count(self) -> int:
        return len(self._handles)

    def start(self) -> None:
        if not self._rows:
            return
        for key in sorted(self._registry.known_keys()):
            self._attach_key(key)
        if not self.is_active:
            return
        self._handles.append(self._registry.on_new_key().subscribe(self._on_new_key))

    def release(self) -> None:
        """Detach from every stream. Safe to call more than once."""
        if self._state is SubscriptionState.DETACHED:
            return
        self._state = SubscriptionState.DETACHED
        handles, self._handles = self._handles, []
        for handle in handles:
            handle()
        _logger.debug("Subscription %d released %d handles", self.id, len(handles))
        self._attached.clear()
        if self._on_release is not None:
            self._on_release(self)

    def _on_new_key(self, key: str) -> None:
        if self.is_active:
            self._attach_key(key)

    def _attach_key(self, key: str) -> None:
        for compiled in self._rows:
            if not self.is_active:
                return
            if not compiled.matches(key):
                continue
            marker = (compiled.index, key)
            if marker in self._attached:
                continue
            self._attached.add(marker)
            _logger.debug("Subscription %d attaching row=%d key=%s", self.id, compiled.index, key)

            filtered = self._registry.get_stream(key).filter(self._context_predicate)
            rated = wrap_with_policy(
                filtered,
                compiled.row,
                compiled.policy,
                self._scheduler,
                default_period_ms=self._default_period_ms,
            )
            self._handles.append(rated.subscribe(self._deliver))
            self._replay_key(key)

    def _replay_key(self, key: str) -> None:
        if self._replay is None:
            return
        cached = self._replay.recent_for(self._principal, self._context_predicate, key)
        if cached:
            _logger.debug("Subscription %d replaying %d cached values for key=%s", self.id, len(cached), key)
        for record in cached:
            self._deliver(record)

    def _deliver(self, record: NormalizedRecord) -> None:
        if not self.is_active:
            return
        try:
            self._on_record(record)
        except Exception:
            _logger.debug("on_record callback failed for subscription %d", self.id, exc_info=True)


class SubscriptionManager:
    """Entry point turning subscribe commands into active subscriptions."""

    def __init__(
        self,
        registry: KeyRegistry,
        *,
        scheduler: Scheduler,
        self_context: str,
        replay: ReplaySource | None = None,
        snapshot: EntitySnapshot | None = None,
        default_period_ms: int = DEFAULT_PERIOD_MS,
    ) -> None:
        self._registry = registry
        self._scheduler = scheduler
        self._self_context = self_context
        self._replay = replay
        self._snapshot = snapshot
        self._default_period_ms = default_period_ms
        self._ids = itertools.count(1)
        self._subscriptions: dict[int, ActiveSubscription] = {}

    @property
    def active_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(
        self,
        command: SubscriptionCommand | dict[str, Any],
        on_warn: WarnCallback,
        on_record: RecordCallback,
        principal: Any = None,
    ) -> ActiveSubscription:
        """Activate *command* and return its detach handle.

        Cached values for every matched key are delivered to *on_record*
        before this returns; live values follow as they arrive.
        """
        command = SubscriptionCommand.from_message(command, on_warn)

        context_predicate = compile_context_matcher(
            self._self_context,
            command.context,
            on_warn,
            self._snapshot,
        )
        subscription = ActiveSubscription(
            subscription_id=next(self._ids),
            registry=self._registry,
            replay=self._replay,
            scheduler=self._scheduler,
            context_predicate=context_predicate,
            rows=command.subscribe,
            on_warn=on_warn,
            on_record=on_record,
            principal=principal,
            default_period_ms=self._default_period_ms,
            on_release=self._forget,
        )
        self._subscriptions[subscription.id] = subscription
        _logger.debug(
            "Subscription %d context=%r rows=%d",
            subscription.id,
            command.context,
            len(command.subscribe),
        )
        subscription.start()
        return subscription

    def release_all(self) -> None:
        for subscription in list(self._subscriptions.values()):
            subscription.release()

    def _forget(self, subscription: ActiveSubscription) -> None:
        self._subscriptions.pop(subscription.id, None)
