"""
Doorbell Bridge - HTTP event stream to MQTT translator.

This service attaches to a door station's long-lived event stream, detects
"doorbell pressed" records and republishes them on an MQTT topic. A small
health endpoint reports the state of both links.
"""

__version__ = "0.1.0"
