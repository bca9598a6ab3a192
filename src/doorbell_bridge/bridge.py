"""
Bridge orchestrator.

Lifecycle: STARTING -> RUNNING -> SHUTTING_DOWN -> STOPPED.

Startup connects the bus (fatal on failure), starts the health server and
spawns the event stream consumer. Shutdown disconnects the bus, stops the
health server and then the consumer (an open stream read is cancelled), all
within one shutdown deadline.
"""
import asyncio
import contextlib
import logging
import signal
from enum import Enum
from typing import Optional

import uvicorn

from .adapters import BusAdapter
from .core.config import Settings
from .core.state import ConnectionState
from .main import create_app
from .services.device_client import DeviceClient
from .services.publish_gateway import PublishGateway, create_adapter
from .services.stream_consumer import ConsumerState, EventStreamConsumer, Sleep

logger = logging.getLogger(__name__)


class BridgeState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class HealthServer(uvicorn.Server):
    """uvicorn server that leaves SIGINT/SIGTERM to the bridge."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class Bridge:
    """
    Owns the bridge's components and their lifecycle.

    Usage:
        bridge = Bridge(settings)
        exit_code = asyncio.run(bridge.run())
    """

    def __init__(
        self,
        settings: Settings,
        connection_state: Optional[ConnectionState] = None,
        adapter: Optional[BusAdapter] = None,
        device: Optional[DeviceClient] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.settings = settings
        self.connection_state = connection_state or ConnectionState()
        self.gateway = PublishGateway(adapter or create_adapter(settings), self.connection_state)
        self.device = device or DeviceClient.from_settings(settings)
        self.consumer = EventStreamConsumer(
            self.device,
            self.gateway,
            self.connection_state,
            sleep=sleep,
        )
        self.app = create_app(self.connection_state, self.device)

        self.state = BridgeState.STARTING
        self.exit_code = 0
        self._stop_event = asyncio.Event()
        self._server: Optional[HealthServer] = None
        self._server_task: Optional[asyncio.Task] = None
        self._consumer_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """
        Connect the bus, start the health server and the consumer.

        Raises:
            ConnectionError: If the bus connection cannot be established
        """
        self.state = BridgeState.STARTING
        logger.info(f"Starting Doorbell Bridge with {self.gateway.adapter.name}")

        await self.gateway.connect()

        config = uvicorn.Config(
            self.app,
            host=self.settings.health_host,
            port=self.settings.health_port,
            log_level="warning",
            lifespan="off",
            timeout_graceful_shutdown=int(self.settings.shutdown_timeout),
        )
        self._server = HealthServer(config)
        self._server_task = asyncio.create_task(self._serve(), name="health-server")
        self._consumer_task = asyncio.create_task(self.consumer.run(), name="event-stream-consumer")

        self.state = BridgeState.RUNNING
        logger.info(
            f"Health endpoint on {self.settings.health_host}:{self.settings.health_port}, "
            f"listening to {self.device.host_or_ip}"
        )

    async def _serve(self) -> None:
        try:
            await self._server.serve()
        except SystemExit:
            # uvicorn exits when it cannot bind
            logger.error(f"Could not listen on {self.settings.health_host}:{self.settings.health_port}")
            self.exit_code = 1
            self.request_stop()

    def request_stop(self) -> None:
        if not self._stop_event.is_set():
            logger.info("Shutting down...")
        self._stop_event.set()

    async def wait_for_stop(self) -> None:
        await self._stop_event.wait()

    async def stop(self) -> None:
        """Tear everything down; safe to call more than once."""
        if self.state in (BridgeState.SHUTTING_DOWN, BridgeState.STOPPED):
            return
        self.state = BridgeState.SHUTTING_DOWN

        # One deadline covers the server and the consumer together
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.shutdown_timeout

        await self.gateway.disconnect(self.settings.mqtt_disconnect_grace)
        self.consumer.stop()
        await self._stop_server(max(0.0, deadline - loop.time()))
        await self._stop_consumer(max(0.0, deadline - loop.time()))
        await self.device.aclose()

        self.state = BridgeState.STOPPED
        logger.info("Shutdown complete")

    async def _stop_server(self, timeout: float) -> None:
        if self._server is None or self._server_task is None:
            return
        self._server.should_exit = True
        try:
            await asyncio.wait_for(self._server_task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Health server did not stop within {timeout:.1f}s, forced closed")

    async def _stop_consumer(self, timeout: float) -> None:
        task = self._consumer_task
        if task is None or task.done():
            return

        if self.consumer.state is ConsumerState.STREAMING:
            # An open stream read only returns when the device sends data
            logger.info("Closing event stream")
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            return

        try:
            await asyncio.wait_for(task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Event stream attempt still in flight, consumer cancelled")

    async def run(self) -> int:
        """
        Run until SIGINT/SIGTERM (or ``request_stop()``).

        Returns:
            Process exit code
        """
        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, self.request_stop)
                installed.append(sig)

        try:
            try:
                await self.start()
            except ConnectionError as e:
                logger.error(f"Startup failed: {e}")
                await self.device.aclose()
                self.state = BridgeState.STOPPED
                return 1

            try:
                await self.wait_for_stop()
            finally:
                await self.stop()
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)

        return self.exit_code
