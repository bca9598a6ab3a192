"""
Shared connection state.

Written from the stream consumer (event loop) and from the MQTT client's
network thread, read by the health endpoint. All access goes through a
single lock.
"""
import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class ConnectionSnapshot:
    """Point-in-time copy of both connection flags."""
    stream_connected: bool
    bus_connected: bool


class ConnectionState:
    """Thread-safe holder for the stream and bus connection flags."""

    def __init__(self):
        self._lock = threading.Lock()
        self._stream_connected = False
        self._bus_connected = False

    @property
    def stream_connected(self) -> bool:
        with self._lock:
            return self._stream_connected

    @stream_connected.setter
    def stream_connected(self, value: bool) -> None:
        with self._lock:
            self._stream_connected = bool(value)

    @property
    def bus_connected(self) -> bool:
        with self._lock:
            return self._bus_connected

    @bus_connected.setter
    def bus_connected(self, value: bool) -> None:
        with self._lock:
            self._bus_connected = bool(value)

    def snapshot(self) -> ConnectionSnapshot:
        """Read both flags under one lock acquisition."""
        with self._lock:
            return ConnectionSnapshot(
                stream_connected=self._stream_connected,
                bus_connected=self._bus_connected,
            )
