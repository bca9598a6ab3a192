"""
HTTP client for the door station.

A single digest-authenticated httpx client is shared by the event stream
consumer and the health endpoint. httpx answers the device's first 401
challenge automatically.
"""
import logging
from dataclasses import dataclass
from typing import AsyncContextManager, Optional

import httpx

from ..core.config import Settings
from ..protocol import announce_online_url, event_stream_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of the announce-online call used as a reachability probe."""
    ok: bool
    label: str


PROBE_OK = ProbeResult(ok=True, label="okay")


class DeviceClient:
    """
    Client for the door station's CGI endpoints.

    Attributes:
        host_or_ip: Device host name or IP address
    """

    def __init__(
        self,
        host_or_ip: str,
        username: str,
        password: str,
        request_timeout: float = 5.0,
        stream_read_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the DeviceClient.

        Args:
            host_or_ip: Device host name or IP address
            username: Digest auth username
            password: Digest auth password
            request_timeout: Timeout for one-shot requests (seconds)
            stream_read_timeout: Read timeout on the event stream (None = no timeout)
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.host_or_ip = host_or_ip
        self._request_timeout = request_timeout
        # Configure timeout for the event stream:
        # - connect: 10s for initial connection
        # - read: none by default, the stream is long-lived
        self._stream_timeout = httpx.Timeout(
            connect=10.0,
            read=stream_read_timeout,
            write=30.0,
            pool=None,
        )
        self._http_client = httpx.AsyncClient(
            auth=httpx.DigestAuth(username, password),
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "DeviceClient":
        return cls(
            host_or_ip=settings.hostname_or_ip,
            username=settings.username,
            password=settings.password,
            request_timeout=settings.device_request_timeout,
            stream_read_timeout=settings.stream_read_timeout,
            transport=transport,
        )

    @property
    def event_stream_url(self) -> str:
        return event_stream_url(self.host_or_ip)

    def stream_events(self) -> AsyncContextManager[httpx.Response]:
        """
        Open the event stream.

        Usage:
            async with device.stream_events() as response:
                async for chunk in response.aiter_bytes():
                    ...
        """
        return self._http_client.stream("GET", self.event_stream_url, timeout=self._stream_timeout)

    async def announce_online(self) -> ProbeResult:
        """
        Tell the device the bridge is online.

        The call changes device configuration (VSP_PaaS.Online=true) and its
        outcome is also the device reachability signal of the health check.
        Never raises.
        """
        url = announce_online_url(self.host_or_ip)
        try:
            response = await self._http_client.get(url, timeout=self._request_timeout)
        except httpx.HTTPError as e:
            logger.error(f"Error making device request: {e}")
            return ProbeResult(ok=False, label="HTTP Request Error")

        if response.status_code != 200:
            logger.warning(f"Expected 200 response got: {response.status_code}")
            return ProbeResult(
                ok=False,
                label=f"HTTP Status Error {response.status_code} {response.reason_phrase}",
            )
        return PROBE_OK

    async def aclose(self) -> None:
        await self._http_client.aclose()
