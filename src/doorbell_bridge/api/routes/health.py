from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response

from ...core.state import ConnectionSnapshot, ConnectionState
from ...services.device_client import DeviceClient, ProbeResult

router = APIRouter(tags=["Health"])


def get_connection_state(request: Request) -> ConnectionState:
    return request.app.state.connection_state


def get_device_client(request: Request) -> DeviceClient:
    return request.app.state.device_client


def _link(connected: bool) -> str:
    return "connected" if connected else "disconnected"


def format_health_report(snapshot: ConnectionSnapshot, probe: ProbeResult) -> str:
    return (
        f"MQTT: {_link(snapshot.bus_connected)}, "
        f"HTTP: {_link(snapshot.stream_connected)}, "
        f"Doorbell: {probe.label}"
    )


@router.get("/health", response_class=PlainTextResponse)
async def health_check(
    connection_state: ConnectionState = Depends(get_connection_state),
    device: DeviceClient = Depends(get_device_client),
) -> Response:
    """
    Health check endpoint.

    Returns 200 with an empty body when the bus link, the event stream and the
    device probe are all healthy, otherwise 503 with a one-line diagnostic.
    The probe also announces the bridge as online to the device.
    """
    snapshot = connection_state.snapshot()
    probe = await device.announce_online()

    if snapshot.bus_connected and snapshot.stream_connected and probe.ok:
        return Response(status_code=200)

    return PlainTextResponse(format_health_report(snapshot, probe), status_code=503)
