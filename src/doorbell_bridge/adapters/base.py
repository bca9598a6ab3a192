"""
Base adapter interface for message bus backends.

All adapters implement this interface so the publish gateway stays
backend-agnostic (MQTT in production, in-memory for development and tests).
"""
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Called with True on (re)connect and False on connection loss
ConnectionListener = Callable[[bool], None]


class BusAdapter(ABC):
    """
    Abstract base class for message bus adapters.

    Adapters report connection changes through a single listener which may be
    invoked from a foreign thread (e.g. the MQTT network loop).
    """

    def __init__(self):
        self._connection_listener: Optional[ConnectionListener] = None

    def set_connection_listener(self, listener: Optional[ConnectionListener]) -> None:
        """Register the callback receiving connection state changes."""
        self._connection_listener = listener

    def _notify_connection(self, connected: bool) -> None:
        if self._connection_listener is None:
            return
        try:
            self._connection_listener(connected)
        except Exception as e:
            logger.error(f"Connection listener failed: {e}", exc_info=True)

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection to the message bus.

        Reconnection after a later connection loss is the adapter's job.

        Raises:
            ConnectionError: If unable to connect to the message bus
        """
        pass

    @abstractmethod
    async def disconnect(self, grace: float = 0.25) -> None:
        """
        Disconnect from the message bus, waiting at most ``grace`` seconds
        for the disconnect to complete.
        """
        pass

    @abstractmethod
    async def publish(
        self,
        topic: str,
        payload: bytes = b"",
        qos: int = 0,
        retain: bool = False,
    ) -> None:
        """
        Publish a message and wait for the publish handshake.

        Args:
            topic: The topic to publish to (e.g., "doorbell/pressed")
            payload: Raw message payload
            qos: Quality of service level
            retain: Whether the broker should retain the message

        Raises:
            PublishNotSentError: If the message could not be handed to the bus
            PublishError: If the message was sent but the handshake failed
        """
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """
        Check if the adapter is connected to the message bus.

        Returns:
            True if connected, False otherwise
        """
        pass

    @property
    def name(self) -> str:
        """Return the adapter name for logging."""
        return self.__class__.__name__


class AdapterError(Exception):
    """Base exception for adapter errors."""
    pass


class PublishError(AdapterError):
    """Raised when a message was sent but not acknowledged."""
    pass


class PublishNotSentError(PublishError):
    """Raised when a publish was never attempted (not connected, queue full)."""
    pass


class PublishTimeoutError(PublishError):
    """Raised when the publish handshake did not complete in time."""
    pass
