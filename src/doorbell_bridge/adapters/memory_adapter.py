"""
In-memory adapter for the Doorbell Bridge.

This adapter is primarily used for:
- Local development without a broker (BUS_ADAPTER=memory)
- Unit testing

Published messages are kept in memory and logged; nothing leaves the process.
"""
import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque

from .base import BusAdapter, PublishNotSentError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishedMessage:
    topic: str
    payload: bytes
    qos: int
    retain: bool


class MemoryAdapter(BusAdapter):
    """
    In-memory bus adapter.

    Features:
    - Keeps the most recent publishes in ``published`` (bounded)
    - Connection loss can be simulated with ``drop_connection()``
    """

    def __init__(self, history_size: int = 1000):
        super().__init__()
        self._connected = False
        self.published: Deque[PublishedMessage] = deque(maxlen=history_size)

    async def connect(self) -> None:
        """Mark adapter as connected."""
        if self._connected:
            logger.warning("Memory adapter already connected")
            return

        self._connected = True
        logger.info("Memory adapter connected (in-memory mode)")
        self._notify_connection(True)

    async def disconnect(self, grace: float = 0.25) -> None:
        """Mark adapter as disconnected."""
        if not self._connected:
            return
        self._connected = False
        logger.info("Memory adapter disconnected")
        self._notify_connection(False)

    def drop_connection(self) -> None:
        """Simulate a connection loss detected by the client."""
        self._connected = False
        logger.warning("Memory adapter connection dropped")
        self._notify_connection(False)

    async def publish(
        self,
        topic: str,
        payload: bytes = b"",
        qos: int = 0,
        retain: bool = False,
    ) -> None:
        if not self._connected:
            raise PublishNotSentError("Memory adapter not connected")

        self.published.append(PublishedMessage(topic, payload, qos, retain))
        logger.debug(f"Published {len(payload)} bytes to {topic}")

    @property
    def is_connected(self) -> bool:
        """Check if adapter is connected."""
        return self._connected
