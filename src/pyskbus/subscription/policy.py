"""Per-row delivery policies.

Rows select one of three policies, checked in this order:

* ``minPeriod`` set: *instant* with debounce. A record is delivered
  immediately unless the previous delivery was less than ``minPeriod``
  milliseconds ago, in which case it is dropped.
* ``period`` set or ``policy == "fixed"``: records are buffered in windows of
  ``period`` milliseconds. When a window closes only the latest record per
  ``context:source:path`` is delivered.
* otherwise: every record is delivered as it arrives.

Contradictory or unsupported row fields never fail the subscription; they are
reported through ``on_warn`` and the policy above still applies.
"""

from __future__ import annotations

import enum
import logging

from pyskbus._stream import Scheduler, Stream
from pyskbus.models.records import NormalizedRecord
from pyskbus.models.subscription import SubscribeRow
from pyskbus.subscription.interfaces import WarnCallback

_logger = logging.getLogger(__name__)

SUPPORTED_POLICIES = ("instant", "fixed")
DEFAULT_PERIOD_MS = 1000


class PolicyKind(enum.StrEnum):
    PASSTHROUGH = "passthrough"
    DEBOUNCE = "debounce"
    FIXED = "fixed"


def select_policy(row: SubscribeRow, on_warn: WarnCallback) -> PolicyKind:
    """Pick the policy for *row*, reporting every anomaly through *on_warn*."""
    if row.min_period:
        if row.policy and row.policy != "instant":
            _warn(on_warn, f"minPeriod assumes policy 'instant', ignoring policy {row.policy}")
        kind = PolicyKind.DEBOUNCE
    elif row.period or row.policy == "fixed":
        if row.policy and row.policy != "fixed":
            _warn(on_warn, f"period assumes policy 'fixed', ignoring policy {row.policy}")
        kind = PolicyKind.FIXED
    else:
        kind = PolicyKind.PASSTHROUGH

    if row.format and row.format != "delta":
        _warn(on_warn, "Only delta format supported, using it")
    if row.policy and row.policy not in SUPPORTED_POLICIES:
        _warn(on_warn, f"Only 'instant' and 'fixed' policies supported, ignoring policy {row.policy}")
    return kind


def latest_per_identity(records: list[NormalizedRecord]) -> list[NormalizedRecord]:
    """Keep the last arrival per ``context:source:path``, in arrival order."""
    latest: dict[str, int] = {}
    for index, record in enumerate(records):
        latest[record.identity] = index
    keep = sorted(latest.values())
    return [records[index] for index in keep]


def apply_policy(
    stream: Stream[NormalizedRecord],
    row: SubscribeRow,
    on_warn: WarnCallback,
    scheduler: Scheduler,
    *,
    default_period_ms: int = DEFAULT_PERIOD_MS,
) -> Stream[NormalizedRecord]:
    """Wrap *stream* with the delivery policy selected by *row*."""
    return wrap_with_policy(stream, row, select_policy(row, on_warn), scheduler, default_period_ms=default_period_ms)


def wrap_with_policy(
    stream: Stream[NormalizedRecord],
    row: SubscribeRow,
    kind: PolicyKind,
    scheduler: Scheduler,
    *,
    default_period_ms: int = DEFAULT_PERIOD_MS,
) -> Stream[NormalizedRecord]:
    if kind is PolicyKind.DEBOUNCE:
        min_period = row.min_period or 0
        _logger.debug("path=%s minPeriod=%d", row.path, min_period)
        return stream.debounce_immediate(min_period / 1000.0, scheduler)
    if kind is PolicyKind.FIXED:
        period = row.period or default_period_ms
        _logger.debug("path=%s period=%d", row.path, period)
        return stream.buffer_with_time(period / 1000.0, scheduler).flat_map(latest_per_identity)
    return stream


def _warn(on_warn: WarnCallback, message: str) -> None:
    _logger.debug("Subscription warning: %s", message)
    on_warn(message)
