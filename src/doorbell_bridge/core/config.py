"""
Configuration settings for the Doorbell Bridge.

Values come from environment variables, optionally backed by ``.env`` and
``.env.local`` files (``.env.local`` wins over ``.env``, real environment
variables win over both). Settings are loaded once at startup by the CLI.
"""
from dataclasses import dataclass
from typing import List, Literal, Optional
from urllib.parse import urlsplit

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# scheme -> (tls, transport, default port)
_BROKER_SCHEMES = {
    "tcp": (False, "tcp", 1883),
    "mqtt": (False, "tcp", 1883),
    "ssl": (True, "tcp", 8883),
    "tls": (True, "tcp", 8883),
    "mqtts": (True, "tcp", 8883),
    "ws": (False, "websockets", 80),
    "wss": (True, "websockets", 443),
}


@dataclass(frozen=True)
class BrokerAddress:
    """Broker endpoint parsed from MQTT_BROKER_URL."""
    host: str
    port: int
    tls: bool = False
    transport: str = "tcp"
    path: str = "/mqtt"


def parse_broker_url(url: str) -> BrokerAddress:
    """
    Parse a broker URL such as ``tcp://broker:1883`` or ``wss://host/mqtt``.

    A URL without a scheme is treated as ``tcp://``.

    Raises:
        ValueError: If the scheme is unsupported or the host is missing
    """
    if "://" not in url:
        url = f"tcp://{url}"

    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme not in _BROKER_SCHEMES:
        raise ValueError(
            f"Unsupported broker scheme '{parts.scheme}' "
            f"(expected one of: {', '.join(sorted(_BROKER_SCHEMES))})"
        )
    if not parts.hostname:
        raise ValueError(f"Broker URL '{url}' has no host")

    tls, transport, default_port = _BROKER_SCHEMES[scheme]
    return BrokerAddress(
        host=parts.hostname,
        port=parts.port or default_port,
        tls=tls,
        transport=transport,
        path=parts.path or "/mqtt",
    )


class Settings(BaseSettings):
    """
    Doorbell Bridge configuration loaded from environment variables.

    The seven credential/endpoint values have no defaults: a missing or empty
    value aborts startup.
    """
    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Device (digest auth)
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    hostname_or_ip: str = Field(..., min_length=1)

    # MQTT
    mqtt_broker_url: str = Field(..., min_length=1)
    mqtt_client_id: str = Field(..., min_length=1)
    mqtt_username: str = Field(..., min_length=1)
    mqtt_password: str = Field(..., min_length=1)

    # Adapter configuration
    bus_adapter: Literal["mqtt", "memory"] = "mqtt"

    mqtt_keepalive: int = 60  # seconds
    mqtt_connect_timeout: float = 10.0
    mqtt_publish_timeout: float = 10.0
    mqtt_disconnect_grace: float = 0.25
    mqtt_reconnect_max_delay: int = 30

    # Health endpoint
    health_host: str = "0.0.0.0"
    health_port: int = 8080
    shutdown_timeout: float = 5.0

    # Device HTTP
    device_request_timeout: float = 5.0
    stream_read_timeout: Optional[float] = None  # None = wait forever

    debug: bool = False

    @field_validator("mqtt_broker_url")
    @classmethod
    def _check_broker_url(cls, value: str) -> str:
        parse_broker_url(value)
        return value

    @property
    def broker(self) -> BrokerAddress:
        return parse_broker_url(self.mqtt_broker_url)


def load_settings(**overrides) -> Settings:
    """Load settings from the environment (and dotenv files)."""
    return Settings(**overrides)


def describe_settings_error(exc: ValidationError) -> List[str]:
    """
    Turn a settings ValidationError into one operator-facing line per problem.
    """
    messages = []
    for error in exc.errors():
        name = str(error["loc"][0]).upper() if error["loc"] else "CONFIGURATION"
        if error["type"] in ("missing", "string_too_short"):
            messages.append(f"{name} environment variable is required")
        else:
            messages.append(f"{name}: {error['msg']}")
    return messages
