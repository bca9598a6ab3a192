"""
Device protocol constants.

The door station emits newline-delimited records on its event stream. The
records we care about have a static shape, e.g.:

    Code=AlarmLocal;action=Start;index=0    (36 bytes)
    Code=AlarmLocal;action=Stop;index=0     (35 bytes)

Since the only difference between a "start" and a "stop" record is the action
word, a start record is recognised by its exact length and the byte at a fixed
offset ("a" of "Start", which is "o" for "Stop"). No payload parsing happens.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

EVENT_STREAM_PATH = "/cgi-bin/eventManager.cgi"
EVENT_STREAM_QUERY = "action=attach&codes=[AlarmLocal]&heartbeat=30"

ANNOUNCE_ONLINE_PATH = "/cgi-bin/configManager.cgi"
ANNOUNCE_ONLINE_QUERY = "action=setConfig&VSP_PaaS.Online=true"


@dataclass(frozen=True)
class EventSignature:
    """
    Fixed-shape record signature.

    Attributes:
        name: Human readable event name (used in logs)
        length: Exact record length in bytes, line terminator excluded
        offset: Position of the discriminating byte
        value: Expected value of the discriminating byte
        topic: Bus topic the event is published on
    """
    name: str
    length: int
    offset: int
    value: int
    topic: str

    def matches(self, line: bytes) -> bool:
        return len(line) == self.length and line[self.offset] == self.value


DOORBELL_PRESSED = EventSignature(
    name="doorbell_pressed",
    length=36,
    offset=25,
    value=ord("a"),
    topic="doorbell/pressed",
)

SIGNATURES: tuple[EventSignature, ...] = (DOORBELL_PRESSED,)


def match_signature(
    line: bytes,
    signatures: Iterable[EventSignature] = SIGNATURES,
) -> Optional[EventSignature]:
    """Return the first signature matching ``line``, or None."""
    for signature in signatures:
        if signature.matches(line):
            return signature
    return None


def event_stream_url(host_or_ip: str) -> str:
    """URL of the device's event feed (kept alive by a 30s heartbeat)."""
    return f"http://{host_or_ip}{EVENT_STREAM_PATH}?{EVENT_STREAM_QUERY}"


def announce_online_url(host_or_ip: str) -> str:
    """URL of the config call that flags the device as online."""
    return f"http://{host_or_ip}{ANNOUNCE_ONLINE_PATH}?{ANNOUNCE_ONLINE_QUERY}"
