"""
Publish gateway.

Selects the bus adapter from configuration and turns detected events into
publishes. Failures are reported as a PublishStatus, never raised.
"""
import logging
from enum import Enum

from ..adapters import BusAdapter, MemoryAdapter, MqttAdapter, PublishError, PublishNotSentError
from ..core.config import Settings
from ..core.state import ConnectionState
from ..protocol import EventSignature

logger = logging.getLogger(__name__)


class PublishStatus(str, Enum):
    PUBLISHED = "published"
    NOT_SENT = "not_sent"  # the client refused to send
    FAILED = "failed"  # sent, but the handshake errored or timed out


def create_adapter(settings: Settings) -> BusAdapter:
    """Factory function to create the appropriate adapter based on configuration."""
    adapter_type = settings.bus_adapter.lower()

    if adapter_type == "mqtt":
        return MqttAdapter(
            broker=settings.broker,
            client_id=settings.mqtt_client_id,
            username=settings.mqtt_username,
            password=settings.mqtt_password,
            keepalive=settings.mqtt_keepalive,
            connect_timeout=settings.mqtt_connect_timeout,
            publish_timeout=settings.mqtt_publish_timeout,
            reconnect_max_delay=settings.mqtt_reconnect_max_delay,
        )
    elif adapter_type == "memory":
        return MemoryAdapter()
    else:
        raise ValueError(f"Unknown adapter type: {adapter_type}")


class PublishGateway:
    """
    Turns detected events into bus publishes.

    Publishes are fire-and-forget from the caller's point of view: failures
    are logged and reported through the returned status, never raised, and
    never retried. Connection changes reported by the adapter are mirrored
    into ``ConnectionState.bus_connected``.
    """

    def __init__(
        self,
        adapter: BusAdapter,
        connection_state: ConnectionState,
        qos: int = 0,
        retain: bool = False,
    ):
        self.adapter = adapter
        self._connection_state = connection_state
        self._qos = qos
        self._retain = retain
        adapter.set_connection_listener(self._on_connection_change)

    async def connect(self) -> None:
        """
        Connect the underlying adapter.

        Raises:
            ConnectionError: If the bus cannot be reached
        """
        await self.adapter.connect()

    async def disconnect(self, grace: float = 0.25) -> None:
        await self.adapter.disconnect(grace)

    async def publish_event(self, topic: str, payload: bytes = b"") -> PublishStatus:
        try:
            await self.adapter.publish(topic, payload, qos=self._qos, retain=self._retain)
        except PublishNotSentError as e:
            logger.error(f"Publish to {topic} not sent: {e}")
            return PublishStatus.NOT_SENT
        except PublishError as e:
            logger.error(f"Publish to {topic} failed: {e}")
            return PublishStatus.FAILED
        except Exception as e:
            logger.error(f"Unexpected error publishing to {topic}: {e}", exc_info=True)
            return PublishStatus.FAILED

        logger.debug(f"Published event to {topic}")
        return PublishStatus.PUBLISHED

    async def publish_signature(self, signature: EventSignature) -> PublishStatus:
        """Publish the zero-payload notification for a detected event."""
        return await self.publish_event(signature.topic)

    def _on_connection_change(self, connected: bool) -> None:
        self._connection_state.bus_connected = connected
        if connected:
            logger.info("Connected to MQTT broker")
        else:
            logger.warning("Connection lost to MQTT broker")
