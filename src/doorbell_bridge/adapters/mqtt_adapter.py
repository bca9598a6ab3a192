"""
MQTT adapter for the Doorbell Bridge.

This adapter implements the BusAdapter interface on top of paho-mqtt. The
paho network loop runs on its own thread (``loop_start``) which also handles
automatic reconnection; blocking paho calls are moved off the event loop.
"""
import asyncio
import logging
import threading
from typing import Callable, Optional

import paho.mqtt.client as mqtt
from paho.mqtt.client import CallbackAPIVersion

from ..core.config import BrokerAddress
from .base import BusAdapter, PublishError, PublishNotSentError, PublishTimeoutError

logger = logging.getLogger(__name__)


class MqttAdapter(BusAdapter):
    """
    MQTT adapter backed by a paho-mqtt client.

    Features:
    - Fatal-on-failure initial connect (waits for CONNACK)
    - Automatic reconnection by the paho loop thread
    - Publish waits for the handshake, bounded by ``publish_timeout``
    """

    def __init__(
        self,
        broker: BrokerAddress,
        client_id: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        keepalive: int = 60,
        connect_timeout: float = 10.0,
        publish_timeout: float = 10.0,
        reconnect_max_delay: int = 30,
        client_factory: Optional[Callable[[], mqtt.Client]] = None,
    ):
        """
        Initialize the MQTT adapter.

        Args:
            broker: Parsed broker endpoint
            client_id: MQTT client identifier
            username: Broker username
            password: Broker password
            keepalive: Keepalive interval (seconds)
            connect_timeout: Max wait for the broker's CONNACK (seconds)
            publish_timeout: Max wait for a publish handshake (seconds)
            reconnect_max_delay: Upper bound of paho's reconnect backoff (seconds)
            client_factory: Builds the paho client (tests inject a fake)
        """
        super().__init__()
        self._broker = broker
        self._client_id = client_id
        self._username = username
        self._password = password
        self._keepalive = keepalive
        self._connect_timeout = connect_timeout
        self._publish_timeout = publish_timeout
        self._reconnect_max_delay = reconnect_max_delay
        self._client_factory = client_factory or self._build_client
        self._client: mqtt.Client | None = None

        self._connack = threading.Event()
        self._connack_failure: Optional[str] = None
        self._disconnected = threading.Event()

    def _build_client(self) -> mqtt.Client:
        client = mqtt.Client(
            CallbackAPIVersion.VERSION2,
            client_id=self._client_id,
            protocol=mqtt.MQTTv311,
            transport=self._broker.transport,
        )
        if self._username:
            client.username_pw_set(self._username, self._password)
        if self._broker.tls:
            client.tls_set()
        if self._broker.transport == "websockets":
            client.ws_set_options(path=self._broker.path)
        client.reconnect_delay_set(min_delay=1, max_delay=self._reconnect_max_delay)
        return client

    async def connect(self) -> None:
        """Connect to the broker and wait for a successful CONNACK."""
        if self.is_connected:
            logger.warning("Already connected to MQTT")
            return

        address = f"{self._broker.host}:{self._broker.port}"
        logger.info(f"Connecting to MQTT broker at {address}")

        self._client = self._client_factory()
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect

        try:
            await asyncio.to_thread(self._connect_blocking)
        except Exception as e:
            logger.error(f"Failed to connect to MQTT: {e}")
            raise ConnectionError(f"Failed to connect to MQTT broker at {address}: {e}") from e

    def _connect_blocking(self) -> None:
        self._connack.clear()
        self._connack_failure = None

        self._client.connect(self._broker.host, self._broker.port, keepalive=self._keepalive)
        self._client.loop_start()

        if not self._connack.wait(self._connect_timeout):
            self._client.loop_stop()
            raise TimeoutError(f"no CONNACK within {self._connect_timeout}s")
        if self._connack_failure is not None:
            self._client.loop_stop()
            raise ConnectionRefusedError(self._connack_failure)

    async def disconnect(self, grace: float = 0.25) -> None:
        """Send DISCONNECT and stop the network loop within ``grace`` seconds."""
        if self._client is None:
            return

        logger.info("Disconnecting from MQTT")
        client, self._client = self._client, None
        try:
            await asyncio.to_thread(self._disconnect_blocking, client, grace)
        except Exception as e:
            logger.warning(f"Error disconnecting from MQTT: {e}")
        logger.info("Disconnected from MQTT")

    def _disconnect_blocking(self, client: mqtt.Client, grace: float) -> None:
        self._disconnected.clear()
        client.disconnect()
        if self._disconnected.wait(grace):
            client.loop_stop()
        else:
            # paho's loop thread is a daemon; it dies with the process
            logger.warning(f"MQTT disconnect did not complete within {grace}s")

    async def publish(
        self,
        topic: str,
        payload: bytes = b"",
        qos: int = 0,
        retain: bool = False,
    ) -> None:
        """
        Publish a message and wait for the handshake.

        Raises:
            PublishNotSentError: The client refused to send (e.g. not connected)
            PublishTimeoutError: The handshake did not complete in time
            PublishError: The handshake failed
        """
        client = self._client
        if client is None:
            raise PublishNotSentError("MQTT client not connected")
        await asyncio.to_thread(self._publish_blocking, client, topic, payload, qos, retain)

    def _publish_blocking(
        self,
        client: mqtt.Client,
        topic: str,
        payload: bytes,
        qos: int,
        retain: bool,
    ) -> None:
        info = client.publish(topic, payload=payload, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishNotSentError(
                f"Publish to {topic} not sent: {mqtt.error_string(info.rc)}"
            )

        try:
            info.wait_for_publish(timeout=self._publish_timeout)
        except (RuntimeError, ValueError) as e:
            raise PublishError(f"Publish to {topic} failed: {e}") from e

        if not info.is_published():
            raise PublishTimeoutError(
                f"Publish to {topic} not acknowledged within {self._publish_timeout}s"
            )
        logger.debug(f"Published message to {topic}")

    @property
    def is_connected(self) -> bool:
        """Check if connected to the broker."""
        return self._client is not None and self._client.is_connected()

    # paho callbacks (run on the paho network thread)

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            logger.error(f"MQTT connect refused: {reason_code}")
            self._connack_failure = str(reason_code)
        else:
            self._notify_connection(True)
        self._connack.set()

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        self._disconnected.set()
        self._notify_connection(False)
        if reason_code.is_failure:
            logger.warning(f"MQTT connection lost: {reason_code}")
