"""
Pytest configuration for Doorbell Bridge tests.
"""
from typing import Callable, List

import httpx
import pytest

from doorbell_bridge.adapters import MemoryAdapter
from doorbell_bridge.core.config import Settings
from doorbell_bridge.core.state import ConnectionState
from doorbell_bridge.services.device_client import DeviceClient
from doorbell_bridge.services.publish_gateway import PublishGateway

START_RECORD = b"Code=AlarmLocal;action=Start;index=0"
STOP_RECORD = b"Code=AlarmLocal;action=Stop;index=0"

REQUIRED_SETTINGS = {
    "username": "admin",
    "password": "secret",
    "hostname_or_ip": "doorbell.local",
    "mqtt_broker_url": "tcp://broker:1883",
    "mqtt_client_id": "doorbell-test",
    "mqtt_username": "mqtt",
    "mqtt_password": "mqtt-secret",
}


class ChunkedStream(httpx.AsyncByteStream):
    """Response body delivered in chunks, optionally failing at the end."""

    def __init__(self, chunks: List[bytes], error: Exception | None = None):
        self._chunks = chunks
        self._error = error

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error

    async def aclose(self) -> None:
        pass


class SleepRecorder:
    """Replacement for the consumer's cooldown wait."""

    def __init__(self, stop_after: int | None = None, consumer=None):
        self.delays: List[float] = []
        self.stop_after = stop_after
        self.consumer = consumer

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.stop_after is not None and len(self.delays) >= self.stop_after:
            self.consumer.stop()


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    """Build Settings without reading the environment's dotenv files."""
    def _make(**overrides) -> Settings:
        values = {**REQUIRED_SETTINGS, "bus_adapter": "memory", **overrides}
        return Settings(_env_file=None, **values)
    return _make


@pytest.fixture
def connection_state() -> ConnectionState:
    return ConnectionState()


@pytest.fixture
async def adapter():
    """Create a memory adapter, disconnected on teardown."""
    adapter = MemoryAdapter()
    yield adapter
    await adapter.disconnect()


@pytest.fixture
async def gateway(adapter, connection_state) -> PublishGateway:
    gateway = PublishGateway(adapter, connection_state)
    await gateway.connect()
    return gateway


@pytest.fixture
async def device_factory():
    """Create DeviceClients backed by an httpx.MockTransport handler."""
    devices: List[DeviceClient] = []

    def _make(handler) -> DeviceClient:
        device = DeviceClient(
            host_or_ip="doorbell.local",
            username="admin",
            password="secret",
            transport=httpx.MockTransport(handler),
        )
        devices.append(device)
        return device

    yield _make

    for device in devices:
        await device.aclose()
