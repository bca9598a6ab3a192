"""
FastAPI application for the Doorbell Bridge health endpoint.
"""
from fastapi import FastAPI

from . import __version__
from .api import router
from .core.state import ConnectionState
from .services.device_client import DeviceClient


def create_app(connection_state: ConnectionState, device_client: DeviceClient) -> FastAPI:
    """
    Build the health application around the bridge's shared objects.

    Args:
        connection_state: Flags written by the stream consumer and bus callbacks
        device_client: Used for the device probe on each health request
    """
    app = FastAPI(
        title="Doorbell Bridge",
        description="Door station event stream to MQTT bridge",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.connection_state = connection_state
    app.state.device_client = device_client
    app.include_router(router)
    return app
