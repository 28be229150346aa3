"""Hub configuration for pyskbus."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from pyskbus.exceptions import SkBusConfigError
from pyskbus.ingestion.coerce import env_bool


def _env_number(env: Mapping[str, str], key: str, cast: type) -> Any:
    raw = env.get(key)
    if raw is None:
        return None
    try:
        return cast(raw)
    except ValueError as exc:
        raise SkBusConfigError(f"{key} must be {cast.__name__}, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class HubConfig:
    """Hub configuration.

    Parameters
    ----------
    self_context : str
        Fully qualified context of this installation's own entity. Records
        for it match the ``"self"`` / ``"vessels.self"`` context alias.
    default_period_ms : int
        Window length for fixed policies whose subscribe row has no period.
    mqtt_enabled : bool
        Start the MQTT delta listener when the hub starts.
    mqtt_host : str
        Broker host name.
    mqtt_port : int
        Broker port.
    mqtt_topic : str
        Topic (filter) carrying JSON deltas.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    mqtt_client_id : str
        Client id; empty lets the broker assign one.
    mqtt_username : str or None
        Optional broker user name.
    mqtt_password : str or None
        Optional broker password.
    mqtt_tls : bool
        Connect with TLS.
    """

    self_context: str = "vessels.self"
    default_period_ms: int = 1000
    mqtt_enabled: bool = False
    mqtt_host: str = "localhost"
    mqtt_port: int = 1883
    mqtt_topic: str = "signalk/delta"
    mqtt_keepalive: int = 60
    mqtt_client_id: str = ""
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_tls: bool = False

    def __post_init__(self) -> None:
        if not self.self_context.strip():
            raise SkBusConfigError("self_context must be non-empty")
        if self.default_period_ms <= 0:
            raise SkBusConfigError("default_period_ms must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> HubConfig:
        """Create configuration from ``SKBUS_*`` environment variables.

        Explicit keyword arguments override environment values.

        Raises
        ------
        SkBusConfigError
            If a numeric variable cannot be parsed.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "SKBUS_SELF_CONTEXT": "self_context",
            "SKBUS_MQTT_HOST": "mqtt_host",
            "SKBUS_MQTT_TOPIC": "mqtt_topic",
            "SKBUS_MQTT_CLIENT_ID": "mqtt_client_id",
            "SKBUS_MQTT_USERNAME": "mqtt_username",
            "SKBUS_MQTT_PASSWORD": "mqtt_password",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_INT_MAP = {
            "SKBUS_DEFAULT_PERIOD_MS": "default_period_ms",
            "SKBUS_MQTT_PORT": "mqtt_port",
            "SKBUS_MQTT_KEEPALIVE": "mqtt_keepalive",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            if field_name in overrides:
                continue
            val = _env_number(env, env_key, int)
            if val is not None:
                config_kwargs[field_name] = val

        if "mqtt_enabled" not in overrides:
            config_kwargs["mqtt_enabled"] = env_bool(env.get("SKBUS_MQTT_ENABLED"), False)
        if "mqtt_tls" not in overrides:
            config_kwargs["mqtt_tls"] = env_bool(env.get("SKBUS_MQTT_TLS"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
