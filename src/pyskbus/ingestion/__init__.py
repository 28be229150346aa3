"""Ingestion layer.

This package turns inbound delta payloads (from MQTT or handed in directly)
into flattened :class:`pyskbus.models.NormalizedRecord` values.
"""

__all__: list[str] = []
