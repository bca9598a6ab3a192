"""
Doorbell Bridge Adapters

This package provides the adapter pattern implementation for the message
bus backends (MQTT, In-Memory).
"""
from .base import (
    AdapterError,
    BusAdapter,
    PublishError,
    PublishNotSentError,
    PublishTimeoutError,
)
from .memory_adapter import MemoryAdapter, PublishedMessage
from .mqtt_adapter import MqttAdapter

__all__ = [
    "AdapterError",
    "BusAdapter",
    "PublishError",
    "PublishNotSentError",
    "PublishTimeoutError",
    "MemoryAdapter",
    "PublishedMessage",
    "MqttAdapter",
]
