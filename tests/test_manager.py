from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pyskbus.models.records import NormalizedRecord, Position
from pyskbus.state.bundle import StreamBundle
from pyskbus.state.cache import DeltaCache
from pyskbus.state.snapshot import FullModel
from pyskbus.subscription.manager import SubscriptionManager, SubscriptionState

SELF = "vessels.urn:mrn:imo:mmsi:230099999"


def _record(path: str, value: Any, *, context: str = SELF, source: str = "n2k.1") -> NormalizedRecord:
    return NormalizedRecord(
        context=context,
        source=source,
        path=path,
        value=value,
        timestamp=datetime(2026, 1, 1, tzinfo=UTC),
    )


class _Harness:
    def __init__(self, scheduler, *, read_filter=None) -> None:
        self.bundle = StreamBundle()
        self.cache = DeltaCache(read_filter=read_filter)
        self.model = FullModel()
        self.manager = SubscriptionManager(
            self.bundle,
            scheduler=scheduler,
            self_context=SELF,
            replay=self.cache,
            snapshot=self.model,
        )
        self.records: list[NormalizedRecord] = []
        self.warnings: list[str] = []

    def publish(self, record: NormalizedRecord) -> None:
        self.model.apply(record)
        self.bundle.push(record)
        self.cache.apply(record)

    def subscribe(self, command: dict[str, Any], principal: Any = None):
        return self.manager.subscribe(command, self.warnings.append, self.records.append, principal)

    @property
    def values(self) -> list[Any]:
        return [record.value for record in self.records]


def test_subscribe_attaches_to_known_matching_keys(scheduler) -> None:
    h = _Harness(scheduler)
    h.bundle.get_bus("navigation.speedOverGround")
    h.bundle.get_bus("environment.depth.belowKeel")

    sub = h.subscribe({"context": "vessels.self", "subscribe": [{"path": "navigation.*"}]})
    h.publish(_record("navigation.speedOverGround", 3.1))
    h.publish(_record("environment.depth.belowKeel", 12.0))

    assert h.values == [3.1]
    assert sub.attached_keys == {"navigation.speedOverGround"}
    assert h.warnings == []


def test_context_filter_applies_to_live_records(scheduler) -> None:
    h = _Harness(scheduler)
    h.subscribe({"context": "vessels.self", "subscribe": [{"path": "*"}]})

    h.publish(_record("navigation.speedOverGround", 1.0, context="vessels.other"))
    h.publish(_record("navigation.speedOverGround", 2.0))

    assert h.values == [2.0]


def test_late_key_is_attached_when_it_appears(scheduler) -> None:
    h = _Harness(scheduler)
    sub = h.subscribe({"subscribe": [{"path": "electrical.*"}]})

    assert sub.attached_keys == set()

    h.publish(_record("electrical.battery.voltage", 12.6))
    h.publish(_record("electrical.battery.voltage", 12.5))

    assert h.values == [12.6, 12.5]
    assert sub.attached_keys == {"electrical.battery.voltage"}


def test_replay_of_cached_values_on_subscribe(scheduler) -> None:
    h = _Harness(scheduler)
    h.publish(_record("navigation.speedOverGround", 1.0, source="n2k.1"))
    h.publish(_record("navigation.speedOverGround", 1.5, source="n2k.2"))
    h.publish(_record("navigation.speedOverGround", 2.0, source="n2k.1"))
    h.publish(_record("navigation.speedOverGround", 9.0, context="vessels.other"))

    h.subscribe({"context": "vessels.self", "subscribe": [{"path": "navigation.speedOverGround", "period": 1000}]})

    # Replay bypasses the fixed window.
    assert h.values == [2.0, 1.5]


def test_replay_respects_principal_visibility(scheduler) -> None:
    def read_filter(principal: Any, record: NormalizedRecord) -> bool:
        return principal == "admin" or not record.path.startswith("notifications.")

    h = _Harness(scheduler, read_filter=read_filter)
    h.publish(_record("notifications.mob", "alarm"))

    h.subscribe({"subscribe": [{"path": "notifications.*"}]}, principal="guest")
    assert h.values == []

    h.subscribe({"subscribe": [{"path": "notifications.*"}]}, principal="admin")
    assert h.values == ["alarm"]


def test_two_rows_matching_one_key_deliver_twice(scheduler) -> None:
    h = _Harness(scheduler)
    h.subscribe(
        {
            "subscribe": [
                {"path": "navigation.speedOverGround"},
                {"path": "navigation.*"},
            ]
        }
    )

    h.publish(_record("navigation.speedOverGround", 4.2))

    assert h.values == [4.2, 4.2]


def test_rows_keep_independent_policies(scheduler) -> None:
    h = _Harness(scheduler)
    h.subscribe(
        {
            "subscribe": [
                {"path": "navigation.speedOverGround", "minPeriod": 500},
                {"path": "navigation.*", "period": 1000},
            ]
        }
    )

    h.publish(_record("navigation.speedOverGround", 1))
    scheduler.advance_to(0.2)
    h.publish(_record("navigation.speedOverGround", 2))

    assert h.values == [1]

    scheduler.advance_to(1.0)

    assert h.values == [1, 2]


def test_key_attached_once_per_row_even_if_announced_again(scheduler) -> None:
    h = _Harness(scheduler)
    h.bundle.get_bus("navigation.speedOverGround")
    sub = h.subscribe({"subscribe": [{"path": "navigation.*"}]})

    # A registry that re-announces an existing key must not double-attach.
    h.bundle._keys.push("navigation.speedOverGround")  # noqa: SLF001
    h.publish(_record("navigation.speedOverGround", 1.0))

    assert h.values == [1.0]
    assert sub.handle_count == 2


def test_release_detaches_everything_and_is_idempotent(scheduler) -> None:
    h = _Harness(scheduler)
    sub = h.subscribe({"subscribe": [{"path": "navigation.*", "period": 1000}, {"path": "environment.*"}]})
    h.publish(_record("navigation.speedOverGround", 1.0))
    h.publish(_record("environment.wind.speedApparent", 7.0))
    speed_bus = h.bundle.get_bus("navigation.speedOverGround")

    assert h.manager.active_count == 1
    assert speed_bus.subscriber_count == 1
    assert scheduler.pending == 1

    sub.release()
    sub.release()

    assert sub.state is SubscriptionState.DETACHED
    assert sub.handle_count == 0
    assert speed_bus.subscriber_count == 0
    assert h.bundle.on_new_key().subscriber_count == 0
    assert scheduler.pending == 0
    assert h.manager.active_count == 0

    h.publish(_record("navigation.speedOverGround", 2.0))
    h.publish(_record("navigation.position", {"latitude": 1.0, "longitude": 2.0}))
    scheduler.advance_to(5.0)

    assert h.values == [7.0]


def test_release_leaves_other_subscriptions_alone(scheduler) -> None:
    h = _Harness(scheduler)
    first = h.subscribe({"subscribe": [{"path": "navigation.*"}]})
    h.subscribe({"subscribe": [{"path": "navigation.*"}]})

    first.release()
    h.publish(_record("navigation.speedOverGround", 5.0))

    assert h.values == [5.0]


def test_radius_context_uses_current_positions(scheduler) -> None:
    h = _Harness(scheduler)
    h.publish(_record("navigation.position", {"latitude": 60.1700, "longitude": 24.9400}, context="vessels.near"))
    h.publish(_record("navigation.position", {"latitude": 61.0, "longitude": 24.9400}, context="vessels.far"))
    h.subscribe(
        {
            "context": {"radius": 5000, "position": {"latitude": 60.1699, "longitude": 24.9384}},
            "subscribe": [{"path": "navigation.speedOverGround"}],
        }
    )

    h.publish(_record("navigation.speedOverGround", 1.0, context="vessels.near"))
    h.publish(_record("navigation.speedOverGround", 2.0, context="vessels.far"))
    h.publish(_record("navigation.speedOverGround", 3.0, context="vessels.nowhere"))

    assert h.values == [1.0]


def test_incomplete_radius_warns_and_matches_nothing(scheduler) -> None:
    h = _Harness(scheduler)
    sub = h.subscribe({"context": {"radius": 5000}, "subscribe": [{"path": "*"}]})

    h.publish(_record("navigation.speedOverGround", 1.0))

    assert sub.is_active
    assert h.values == []
    assert h.warnings == ["Please specify a radius and position for relativePosition"]


def test_row_warnings_reported_once_per_row(scheduler) -> None:
    h = _Harness(scheduler)
    h.bundle.get_bus("navigation.a")
    h.bundle.get_bus("navigation.b")

    h.subscribe({"subscribe": [{"path": "navigation.*", "format": "full"}]})

    assert h.warnings == ["Only delta format supported, using it"]


def test_rows_without_path_are_ignored(scheduler) -> None:
    h = _Harness(scheduler)
    sub = h.subscribe({"subscribe": [{"period": 1000}, {"path": ""}]})

    h.publish(_record("navigation.speedOverGround", 1.0))

    assert h.values == []
    assert sub.handle_count == 0


def test_failing_callback_does_not_detach(scheduler) -> None:
    h = _Harness(scheduler)
    calls: list[float] = []

    def on_record(record: NormalizedRecord) -> None:
        calls.append(record.value)
        raise RuntimeError("sink failed")

    sub = h.manager.subscribe({"subscribe": [{"path": "*"}]}, h.warnings.append, on_record)
    h.publish(_record("navigation.speedOverGround", 1.0))
    h.publish(_record("navigation.speedOverGround", 2.0))

    assert calls == [1.0, 2.0]
    assert sub.is_active


def test_release_from_callback_stops_delivery(scheduler) -> None:
    h = _Harness(scheduler)
    subs: list[Any] = []

    def on_record(record: NormalizedRecord) -> None:
        h.records.append(record)
        subs[0].release()

    subs.append(h.manager.subscribe({"subscribe": [{"path": "navigation.*"}, {"path": "*"}]}, h.warnings.append, on_record))
    h.publish(_record("navigation.speedOverGround", 1.0))
    h.publish(_record("navigation.speedOverGround", 2.0))

    assert h.values == [1.0]
    assert h.bundle.get_bus("navigation.speedOverGround").subscriber_count == 0


def test_model_position_lookup_feeds_geofence(scheduler) -> None:
    h = _Harness(scheduler)
    h.publish(_record("navigation.position", {"latitude": 10.0, "longitude": 20.0}, context="vessels.x"))

    assert h.model.position_of("vessels.x") == Position(latitude=10.0, longitude=20.0)


def test_unsupported_context_warns_and_matches_all(scheduler) -> None:
    h = _Harness(scheduler)
    sub = h.subscribe({"context": 42, "subscribe": [{"path": "*"}]})

    h.publish(_record("navigation.speedOverGround", 1.0, context="vessels.other"))

    assert sub.is_active
    assert h.values == [1.0]
    assert h.warnings == ["Unsupported context 42, matching all contexts"]


def test_invalid_row_is_skipped_and_valid_rows_attach(scheduler) -> None:
    h = _Harness(scheduler)
    sub = h.subscribe({"subscribe": [{"path": 5}, "navigation.*", {"path": "navigation.*"}]})

    h.publish(_record("navigation.speedOverGround", 2.0))

    assert h.values == [2.0]
    assert sub.attached_keys == {"navigation.speedOverGround"}
    assert h.warnings == [
        "Ignoring invalid subscribe row 0: {'path': 5}",
        "Ignoring invalid subscribe row 1: 'navigation.*'",
    ]


def test_subscribe_value_that_is_not_a_list_yields_no_rows(scheduler) -> None:
    h = _Harness(scheduler)
    sub = h.subscribe({"subscribe": "navigation.*"})

    h.publish(_record("navigation.speedOverGround", 3.0))

    assert sub.is_active
    assert sub.handle_count == 0
    assert h.values == []
    assert h.warnings == ["subscribe must be a list of rows, got 'navigation.*'"]


def test_non_object_command_is_reported(scheduler) -> None:
    h = _Harness(scheduler)
    sub = h.subscribe(["navigation.*"])  # type: ignore[arg-type]

    assert sub.handle_count == 0
    assert h.warnings == ["Ignoring subscribe message that is not an object: ['navigation.*']"]


def test_idle_fixed_rows_keep_no_timers(scheduler) -> None:
    h = _Harness(scheduler)
    for index in range(200):
        h.bundle.get_bus(f"sensors.s{index}.value")

    sub = h.subscribe({"context": "vessels.nobody", "subscribe": [{"path": "*", "period": 1000}]})
    scheduler.advance_to(60.0)

    assert len(sub.attached_keys) == 200
    assert scheduler.pending == 0

    h.publish(_record("sensors.s1.value", 1.0, context="vessels.nobody"))

    assert scheduler.pending == 1
    scheduler.advance_to(61.0)
    assert h.values == [1.0]
    assert scheduler.pending == 0
