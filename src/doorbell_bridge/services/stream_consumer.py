"""
Event stream consumer.

Keeps a long-lived GET open against the door station's event feed, splits the
body into lines and publishes a bus notification for every line matching a
known event signature. Any interruption (connect error, non-200 status, read
error, oversized line or the stream simply ending) is followed by a fixed
cooldown before the next attempt. The loop retries until stopped.
"""
import asyncio
import logging
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Iterable, Optional

import httpx

from ..core.state import ConnectionState
from ..protocol import SIGNATURES, EventSignature, match_signature
from .device_client import DeviceClient
from .publish_gateway import PublishGateway

logger = logging.getLogger(__name__)

RETRY_COOLDOWN_SECONDS = 5.0
MAX_LINE_BYTES = 64 * 1024

Sleep = Callable[[float], Awaitable[None]]


class StreamScanError(Exception):
    """Raised when the stream cannot be split into bounded lines."""
    pass


class ConsumerState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    COOLDOWN = "cooldown"
    STOPPED = "stopped"


def _strip_cr(line: bytes) -> bytes:
    return line[:-1] if line.endswith(b"\r") else line


async def iter_lines(
    chunks: AsyncIterator[bytes],
    max_line_bytes: int = MAX_LINE_BYTES,
) -> AsyncIterator[bytes]:
    """
    Split a byte stream into lines.

    Lines are terminated by ``\\n`` (an optional preceding ``\\r`` is dropped).
    A trailing unterminated line is yielded at end of stream.

    Raises:
        StreamScanError: If a line grows beyond ``max_line_bytes``
    """
    buffer = bytearray()
    async for chunk in chunks:
        buffer.extend(chunk)
        while True:
            end = buffer.find(b"\n")
            if end < 0:
                break
            if end > max_line_bytes:
                raise StreamScanError(f"line exceeds {max_line_bytes} bytes")
            line = bytes(buffer[:end])
            del buffer[:end + 1]
            yield _strip_cr(line)
        if len(buffer) > max_line_bytes:
            raise StreamScanError(f"line exceeds {max_line_bytes} bytes")
    if buffer:
        yield _strip_cr(bytes(buffer))


class EventStreamConsumer:
    """
    Supervised, continuously reconnecting consumer of the device event feed.

    ``run_once()`` performs exactly one connection attempt; ``run()`` repeats
    it until ``stop()`` is called. Stopping is cooperative: it is checked
    between attempts and cuts the cooldown short, but does not interrupt an
    in-flight read.
    """

    def __init__(
        self,
        device: DeviceClient,
        gateway: PublishGateway,
        connection_state: ConnectionState,
        signatures: Iterable[EventSignature] = SIGNATURES,
        cooldown: float = RETRY_COOLDOWN_SECONDS,
        sleep: Optional[Sleep] = None,
    ):
        """
        Args:
            device: Client for the door station
            gateway: Publishes detected events
            connection_state: Receives the stream connection flag
            signatures: Event signatures to detect
            cooldown: Delay after every failed or finished attempt (seconds)
            sleep: Replaces the cooldown wait (tests inject a recorder)
        """
        self._device = device
        self._gateway = gateway
        self._connection_state = connection_state
        self._signatures = tuple(signatures)
        self._cooldown_seconds = cooldown
        self._sleep = sleep or self._wait_for_stop
        self._stop_event = asyncio.Event()

        self.state = ConsumerState.IDLE
        self.attempts = 0

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Request the loop to end after the current attempt."""
        self._stop_event.set()

    async def run(self) -> None:
        """Main loop: one attempt per iteration until stopped."""
        logger.info("Starting event stream consumer")
        try:
            while not self._stop_event.is_set():
                try:
                    await self.run_once()
                except Exception as e:
                    logger.error(f"Unexpected error in event stream: {e}", exc_info=True)
                    self._connection_state.stream_connected = False
                    await self._cooldown()
        finally:
            self._connection_state.stream_connected = False
            self.state = ConsumerState.STOPPED
            logger.info("Event stream consumer stopped")

    async def run_once(self) -> None:
        """Connect, consume until the stream ends or fails, then cool down."""
        self.state = ConsumerState.CONNECTING
        self.attempts += 1
        logger.debug(f"Connecting to event stream (attempt {self.attempts})")

        try:
            async with self._device.stream_events() as response:
                if response.status_code != 200:
                    logger.warning(f"Received non-OK HTTP status: {response.status_code}")
                else:
                    await self._consume(response)
        except httpx.HTTPError as e:
            if self.state is ConsumerState.STREAMING:
                logger.warning(f"Error reading the stream: {e!r}")
            else:
                logger.warning(f"Error fetching http stream: {e!r}")
        except StreamScanError as e:
            logger.warning(f"Error reading the stream: {e}")

        self._connection_state.stream_connected = False
        await self._cooldown()

    async def _consume(self, response: httpx.Response) -> None:
        logger.info("Connected to HTTP stream and listening for events")
        self._connection_state.stream_connected = True
        self.state = ConsumerState.STREAMING

        async for line in iter_lines(response.aiter_bytes()):
            signature = match_signature(line, self._signatures)
            if signature is None:
                continue
            logger.info(f"Event detected: {signature.name}")
            # The gateway logs and swallows publish failures
            await self._gateway.publish_signature(signature)

        logger.info("Event stream ended")

    async def _cooldown(self) -> None:
        if self._stop_event.is_set():
            return
        self.state = ConsumerState.COOLDOWN
        logger.debug(f"Reconnecting in {self._cooldown_seconds:.1f}s")
        await self._sleep(self._cooldown_seconds)

    async def _wait_for_stop(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
