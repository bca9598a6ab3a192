"""
Core building blocks: configuration and shared connection state.
"""
from .config import BrokerAddress, Settings, describe_settings_error, load_settings, parse_broker_url
from .state import ConnectionSnapshot, ConnectionState

__all__ = [
    "BrokerAddress",
    "Settings",
    "describe_settings_error",
    "load_settings",
    "parse_broker_url",
    "ConnectionSnapshot",
    "ConnectionState",
]
