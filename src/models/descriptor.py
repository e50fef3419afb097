"""
Normalized packet record sent to observers and folded into the aggregator.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .packet import ProtocolTag


@dataclass(frozen=True)
class PacketDescriptor:
    """
    Transport-agnostic description of one captured packet.

    ``protocol`` is always set. Every other field may be empty when
    extraction failed; the record is still emitted.
    """
    id: str
    timestamp: datetime
    source: str
    destination: str
    protocol: ProtocolTag
    size: int
    info: str = ""
    hostname: Optional[str] = None
    raw: str = ""

    def __post_init__(self):
        if self.size < 0:
            raise ValueError(f"Packet size must be >= 0, got {self.size}")
        if not isinstance(self.protocol, ProtocolTag):
            object.__setattr__(self, "protocol", ProtocolTag(self.protocol))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "destination": self.destination,
            "protocol": self.protocol.value,
            "size": self.size,
            "hostname": self.hostname,
            "info": self.info,
            "raw": self.raw,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "PacketDescriptor":
        """Rebuild a descriptor received over the control channel."""
        return cls(
            id=payload["id"],
            timestamp=parse_timestamp(payload["timestamp"]),
            source=payload.get("source", ""),
            destination=payload.get("destination", ""),
            protocol=ProtocolTag(payload.get("protocol", "UNKNOWN")),
            size=int(payload.get("size", 0)),
            info=payload.get("info", ""),
            hostname=payload.get("hostname"),
            raw=payload.get("raw", ""),
        )


def parse_timestamp(text: str) -> datetime:
    """ISO-8601 instant; accepts the ``Z`` suffix JavaScript clients send."""
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)
