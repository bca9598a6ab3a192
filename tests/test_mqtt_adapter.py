"""
Tests for the MQTT adapter.

The paho client is replaced by a MagicMock whose network calls fire the
adapter's callbacks the way the paho loop thread would.
"""
from unittest.mock import MagicMock

import paho.mqtt.client as mqtt
import pytest

from doorbell_bridge.adapters import (
    MqttAdapter,
    PublishError,
    PublishNotSentError,
    PublishTimeoutError,
)
from doorbell_bridge.core.config import BrokerAddress, parse_broker_url


def _reason_code(failure: bool) -> MagicMock:
    reason_code = MagicMock()
    reason_code.is_failure = failure
    reason_code.__str__.return_value = "Not authorized" if failure else "Success"
    return reason_code


def _fake_client(adapter_ref: list, connack: bool | None = True, ack_disconnect: bool = True) -> MagicMock:
    """
    Build a fake paho client.

    connack: True for a successful CONNACK, False for a refusal, None for none at all.
    """
    client = MagicMock()
    client.is_connected.return_value = False

    def loop_start():
        if connack is None:
            return
        adapter_ref[0]._on_connect(client, None, MagicMock(), _reason_code(not connack), None)
        client.is_connected.return_value = connack

    def disconnect():
        client.is_connected.return_value = False
        if ack_disconnect:
            adapter_ref[0]._on_disconnect(client, None, MagicMock(), _reason_code(False), None)

    client.loop_start.side_effect = loop_start
    client.disconnect.side_effect = disconnect
    return client


def _adapter(client: MagicMock, adapter_ref: list, **kwargs) -> MqttAdapter:
    options = {
        "broker": BrokerAddress("broker", 1883),
        "client_id": "doorbell-test",
        "username": "mqtt",
        "password": "mqtt-secret",
        "connect_timeout": 0.2,
        "publish_timeout": 0.2,
    }
    options.update(kwargs)
    adapter = MqttAdapter(client_factory=lambda: client, **options)
    adapter_ref.append(adapter)
    return adapter


def _publish_info(rc=mqtt.MQTT_ERR_SUCCESS, published=True) -> MagicMock:
    info = MagicMock()
    info.rc = rc
    info.is_published.return_value = published
    return info


class TestMqttConnect:
    """Tests for connecting and disconnecting."""

    async def test_connect_success(self):
        ref = []
        client = _fake_client(ref)
        adapter = _adapter(client, ref)
        events = []
        adapter.set_connection_listener(events.append)

        await adapter.connect()

        client.connect.assert_called_once_with("broker", 1883, keepalive=60)
        assert client.on_connect == adapter._on_connect
        assert client.on_disconnect == adapter._on_disconnect
        assert adapter.is_connected is True
        assert events == [True]

    async def test_connect_refused(self):
        ref = []
        client = _fake_client(ref, connack=False)
        adapter = _adapter(client, ref)
        events = []
        adapter.set_connection_listener(events.append)

        with pytest.raises(ConnectionError, match="Not authorized"):
            await adapter.connect()

        client.loop_stop.assert_called_once()
        assert events == []

    async def test_connect_without_connack_times_out(self):
        ref = []
        client = _fake_client(ref, connack=None)
        adapter = _adapter(client, ref, connect_timeout=0.05)

        with pytest.raises(ConnectionError, match="CONNACK"):
            await adapter.connect()

        client.loop_stop.assert_called_once()

    async def test_connect_socket_error(self):
        ref = []
        client = _fake_client(ref)
        client.connect.side_effect = OSError("Connection refused")
        adapter = _adapter(client, ref)

        with pytest.raises(ConnectionError):
            await adapter.connect()

        client.loop_start.assert_not_called()

    async def test_disconnect_stops_loop(self):
        ref = []
        client = _fake_client(ref)
        adapter = _adapter(client, ref)
        events = []
        adapter.set_connection_listener(events.append)
        await adapter.connect()

        await adapter.disconnect(grace=0.2)

        client.disconnect.assert_called_once()
        client.loop_stop.assert_called_once()
        assert adapter.is_connected is False
        assert events == [True, False]

    async def test_disconnect_grace_expires(self):
        """A broker that never confirms the disconnect does not block shutdown."""
        ref = []
        client = _fake_client(ref, ack_disconnect=False)
        adapter = _adapter(client, ref)
        await adapter.connect()

        await adapter.disconnect(grace=0.05)

        client.loop_stop.assert_not_called()
        assert adapter.is_connected is False

    async def test_disconnect_without_connect(self):
        ref = []
        client = _fake_client(ref)
        adapter = _adapter(client, ref)

        await adapter.disconnect()

        client.disconnect.assert_not_called()

    async def test_connection_loss_notifies_listener(self):
        ref = []
        client = _fake_client(ref)
        adapter = _adapter(client, ref)
        events = []
        adapter.set_connection_listener(events.append)
        await adapter.connect()

        adapter._on_disconnect(client, None, MagicMock(), _reason_code(True), None)
        adapter._on_connect(client, None, MagicMock(), _reason_code(False), None)

        assert events == [True, False, True]


class TestMqttPublish:
    """Tests for publish outcomes."""

    async def _connected(self, **kwargs):
        ref = []
        client = _fake_client(ref)
        adapter = _adapter(client, ref, **kwargs)
        await adapter.connect()
        return adapter, client

    async def test_publish_success(self):
        adapter, client = await self._connected()
        info = _publish_info()
        client.publish.return_value = info

        await adapter.publish("doorbell/pressed")

        client.publish.assert_called_once_with("doorbell/pressed", payload=b"", qos=0, retain=False)
        info.wait_for_publish.assert_called_once_with(timeout=0.2)

    async def test_publish_not_sent(self):
        adapter, client = await self._connected()
        client.publish.return_value = _publish_info(rc=mqtt.MQTT_ERR_NO_CONN)

        with pytest.raises(PublishNotSentError):
            await adapter.publish("doorbell/pressed")

    async def test_publish_handshake_timeout(self):
        adapter, client = await self._connected()
        client.publish.return_value = _publish_info(published=False)

        with pytest.raises(PublishTimeoutError):
            await adapter.publish("doorbell/pressed")

    async def test_publish_handshake_error(self):
        adapter, client = await self._connected()
        info = _publish_info()
        info.wait_for_publish.side_effect = RuntimeError("connection lost")
        client.publish.return_value = info

        with pytest.raises(PublishError) as exc_info:
            await adapter.publish("doorbell/pressed")

        assert not isinstance(exc_info.value, PublishNotSentError)

    async def test_publish_before_connect(self):
        ref = []
        adapter = _adapter(_fake_client(ref), ref)

        with pytest.raises(PublishNotSentError):
            await adapter.publish("doorbell/pressed")


class TestMqttClientBuild:
    """Tests for the real paho client construction."""

    def test_build_tcp_client(self):
        adapter = MqttAdapter(parse_broker_url("tcp://localhost:1883"), client_id="doorbell-test")
        client = adapter._build_client()
        assert isinstance(client, mqtt.Client)

    def test_build_websocket_client(self):
        adapter = MqttAdapter(
            parse_broker_url("ws://localhost:9001/mqtt"),
            client_id="doorbell-test",
            username="mqtt",
            password="secret",
        )
        client = adapter._build_client()
        assert isinstance(client, mqtt.Client)
