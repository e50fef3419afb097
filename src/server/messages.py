"""
Control channel message shapes.

Every message, in either direction, is a JSON object with a ``type``.

Observer -> engine:
    get-interfaces, start-scan {interface?, filter?}, stop-scan, clear-stats
Engine -> observer:
    interfaces, scan-started, scan-stopped, stats-cleared, error, packet, user-stats
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from models.descriptor import PacketDescriptor
from models.stats import UserStats

# Observer -> engine
GET_INTERFACES = "get-interfaces"
START_SCAN = "start-scan"
STOP_SCAN = "stop-scan"
CLEAR_STATS = "clear-stats"

INBOUND_TYPES = frozenset({GET_INTERFACES, START_SCAN, STOP_SCAN, CLEAR_STATS})

# Engine -> observer
INTERFACES = "interfaces"
SCAN_STARTED = "scan-started"
SCAN_STOPPED = "scan-stopped"
STATS_CLEARED = "stats-cleared"
ERROR = "error"
PACKET = "packet"
USER_STATS = "user-stats"

Message = Dict[str, Any]


class MessageError(ValueError):
    """A control message that cannot be acted upon."""


@dataclass(frozen=True)
class ControlMessage:
    type: str
    interface: Optional[str] = None
    filter: Optional[str] = None


def _optional_text(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MessageError(f"Field '{key}' must be a string")
    return value.strip() or None


def parse_control_message(data: Any) -> ControlMessage:
    """Validate an inbound message (dict or JSON text)."""
    if isinstance(data, (bytes, bytearray)):
        data = data.decode("utf-8", errors="replace")
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError as e:
            raise MessageError(f"Malformed message: {e}") from e
    if not isinstance(data, dict):
        raise MessageError("Malformed message: expected a JSON object")

    message_type = data.get("type")
    if message_type not in INBOUND_TYPES:
        raise MessageError(f"Unknown message type: {message_type!r}")

    if message_type == START_SCAN:
        return ControlMessage(
            type=message_type,
            interface=_optional_text(data, "interface"),
            filter=_optional_text(data, "filter"),
        )
    return ControlMessage(type=message_type)


def interfaces_message(names: Iterable[str]) -> Message:
    return {"type": INTERFACES, "interfaces": [{"name": name} for name in names]}


def scan_started_message(interface: str, filter_expr: str = "") -> Message:
    return {"type": SCAN_STARTED, "interface": interface, "filter": filter_expr}


def scan_stopped_message() -> Message:
    return {"type": SCAN_STOPPED}


def stats_cleared_message() -> Message:
    return {"type": STATS_CLEARED}


def error_message(text: str) -> Message:
    return {"type": ERROR, "message": text}


def packet_message(descriptor: PacketDescriptor) -> Message:
    return {"type": PACKET, "packet": descriptor.to_dict()}


def user_stats_message(stats: Iterable[UserStats]) -> Message:
    return {"type": USER_STATS, "data": [entry.to_dict() for entry in stats]}
