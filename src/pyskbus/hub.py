"""High-level telemetry hub wiring ingestion to subscriptions."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pyskbus._mqtt import MqttDelta, MqttDeltaRuntime, MqttSettings
from pyskbus._stream import LoopScheduler, Scheduler
from pyskbus.config import HubConfig
from pyskbus.exceptions import DeltaParseError
from pyskbus.ingestion.normalize import flatten_delta, parse_delta
from pyskbus.models.delta import Delta
from pyskbus.models.records import NormalizedRecord
from pyskbus.models.subscription import SubscriptionCommand
from pyskbus.state.bundle import StreamBundle
from pyskbus.state.cache import DeltaCache, ReadFilter
from pyskbus.state.snapshot import FullModel
from pyskbus.subscription.interfaces import RecordCallback, WarnCallback
from pyskbus.subscription.manager import ActiveSubscription, SubscriptionManager

_logger = logging.getLogger(__name__)


class TelemetryHub:
    """Ingests deltas and serves subscriptions over them.

    Usage::

        async with TelemetryHub(HubConfig(self_context="vessels.urn:mrn:imo:mmsi:230099999")) as hub:
            sub = hub.subscribe(
                {"context": "vessels.self", "subscribe": [{"path": "navigation.*"}]},
                on_warn=print,
                on_record=print,
            )
            hub.handle_delta(delta)
            sub.release()
    """

    def __init__(
        self,
        config: HubConfig | None = None,
        *,
        read_filter: ReadFilter | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._config = config or HubConfig()
        self._scheduler = scheduler or LoopScheduler()
        self.bundle = StreamBundle()
        self.cache = DeltaCache(read_filter=read_filter)
        self.model = FullModel()
        self.subscriptions = SubscriptionManager(
            self.bundle,
            scheduler=self._scheduler,
            self_context=self._config.self_context,
            replay=self.cache,
            snapshot=self.model,
            default_period_ms=self._config.default_period_ms,
        )
        self._mqtt_runtime: MqttDeltaRuntime | None = None

    @property
    def config(self) -> HubConfig:
        return self._config

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TelemetryHub:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        if not self._config.mqtt_enabled:
            return
        loop = asyncio.get_running_loop()
        runtime = MqttDeltaRuntime(loop=loop, on_delta=self._on_mqtt_delta, logger=_logger)
        try:
            await loop.run_in_executor(None, runtime.start, MqttSettings.from_config(self._config))
        except Exception:
            _logger.debug("MQTT runtime start failed", exc_info=True)
            return
        self._mqtt_runtime = runtime

    async def stop(self) -> None:
        self.subscriptions.release_all()
        runtime = self._mqtt_runtime
        self._mqtt_runtime = None
        if runtime is None:
            return
        try:
            await asyncio.get_running_loop().run_in_executor(None, runtime.stop)
        except Exception:
            _logger.debug("MQTT runtime stop failed", exc_info=True)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def handle_delta(self, delta: Delta | dict[str, Any]) -> list[NormalizedRecord]:
        """Flatten *delta* and publish its records.

        Raises
        ------
        DeltaParseError
            If *delta* is not a valid delta.
        """
        records = flatten_delta(parse_delta(delta), default_context=self._config.self_context)
        for record in records:
            self.publish(record)
        return records

    def publish(self, record: NormalizedRecord) -> None:
        # Geofence filters read the model; replay must not repeat the live record.
        self.model.apply(record)
        self.bundle.push(record)
        self.cache.apply(record)

    def _on_mqtt_delta(self, message: MqttDelta) -> None:
        try:
            self.handle_delta(message.payload)
        except DeltaParseError:
            _logger.debug("Dropping invalid delta from topic=%s", message.topic, exc_info=True)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(
        self,
        command: SubscriptionCommand | dict[str, Any],
        on_warn: WarnCallback,
        on_record: RecordCallback,
        principal: Any = None,
    ) -> ActiveSubscription:
        return self.subscriptions.subscribe(command, on_warn, on_record, principal)
