from .device_client import DeviceClient, ProbeResult
from .publish_gateway import PublishGateway, PublishStatus, create_adapter
from .stream_consumer import (
    MAX_LINE_BYTES,
    RETRY_COOLDOWN_SECONDS,
    ConsumerState,
    EventStreamConsumer,
    StreamScanError,
    iter_lines,
)

__all__ = [
    "DeviceClient",
    "ProbeResult",
    "PublishGateway",
    "PublishStatus",
    "create_adapter",
    "MAX_LINE_BYTES",
    "RETRY_COOLDOWN_SECONDS",
    "ConsumerState",
    "EventStreamConsumer",
    "StreamScanError",
    "iter_lines",
]
