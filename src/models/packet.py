# Packet data model
"""
Packet data models for TrafficLens.

THESE MODELS ARE IMMUTABLE - every decoded layer is a frozen dataclass.
A decoded packet is a small tree of layers:

    link layer (Ethernet / cooked / null)
      -> network layer (IPv4 / IPv6 / ARP), optional
        -> transport layer (TCP / UDP / ICMP), optional
          -> raw payload bytes, optional

Consumers dispatch on the layer *type* (isinstance), never on names.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple, Union


class ProtocolTag(str, Enum):
    """Application-level protocol tag assigned to every packet."""
    TCP = "TCP"
    UDP = "UDP"
    ICMP = "ICMP"
    HTTP = "HTTP"
    HTTPS = "HTTPS"
    ARP = "ARP"
    DNS = "DNS"
    UNKNOWN = "UNKNOWN"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RawFrame:
    """
    A frame as delivered by a capture backend: bytes + capture metadata.
    """
    timestamp: float
    """Seconds since Unix epoch, with fractional part"""

    data: bytes
    """Captured bytes. DO NOT modify this - create new objects instead."""

    link_type: int = 1
    """libpcap DLT_* constant (e.g., 1 = DLT_EN10MB for Ethernet)"""

    wire_length: Optional[int] = None
    """Bytes on the wire; defaults to len(data)"""

    @property
    def original_length(self) -> int:
        return self.wire_length if self.wire_length is not None else len(self.data)

    @property
    def is_truncated(self) -> bool:
        """True if captured length < original length (snaplen limited)."""
        return len(self.data) < self.original_length


# TCP flag bits, in the order they are displayed
TCP_FLAG_BITS: Tuple[Tuple[str, int], ...] = (
    ("SYN", 0x02),
    ("ACK", 0x10),
    ("FIN", 0x01),
    ("RST", 0x04),
    ("PSH", 0x08),
    ("URG", 0x20),
)


# ---------- Transport layers ----------

@dataclass(frozen=True)
class TcpLayer:
    src_port: int
    dst_port: int
    seq: int = 0
    ack: int = 0
    window: int = 0
    flags: int = 0
    payload: bytes = b""

    @property
    def flag_names(self) -> Tuple[str, ...]:
        """Set flags among SYN, ACK, FIN, RST, PSH, URG in that fixed order."""
        return tuple(name for name, bit in TCP_FLAG_BITS if self.flags & bit)


@dataclass(frozen=True)
class UdpLayer:
    src_port: int
    dst_port: int
    length: int = 0
    """Value of the UDP header length field (header + payload)."""
    payload: bytes = b""


@dataclass(frozen=True)
class IcmpLayer:
    type: int
    code: int
    version: int = 4
    payload: bytes = b""


TransportLayer = Union[TcpLayer, UdpLayer, IcmpLayer]


# ---------- Network layers ----------

@dataclass(frozen=True)
class IPv4Layer:
    src: str
    dst: str
    protocol: int
    ttl: int = 0
    payload: Optional[TransportLayer] = None


@dataclass(frozen=True)
class IPv6Layer:
    src: str
    dst: str
    next_header: int
    hop_limit: int = 0
    payload: Optional[TransportLayer] = None


@dataclass(frozen=True)
class ArpLayer:
    operation: int
    """1 = request, 2 = reply"""
    sender_mac: str
    sender_ip: str
    target_mac: str
    target_ip: str


NetworkLayer = Union[IPv4Layer, IPv6Layer, ArpLayer]


# ---------- Link layers ----------

@dataclass(frozen=True)
class EthernetLayer:
    src_mac: str
    dst_mac: str
    ethertype: int
    vlan_ids: Tuple[int, ...] = field(default_factory=tuple)
    payload: Optional[NetworkLayer] = None


@dataclass(frozen=True)
class CookedLayer:
    """Linux cooked capture (SLL) header."""
    ethertype: int
    src_mac: Optional[str] = None
    payload: Optional[NetworkLayer] = None


@dataclass(frozen=True)
class NullLayer:
    """BSD loopback / raw IP framing: no hardware addresses."""
    family: int = 0
    payload: Optional[NetworkLayer] = None


LinkLayer = Union[EthernetLayer, CookedLayer, NullLayer]


@dataclass(frozen=True)
class DecodedPacket:
    """
    A captured frame after best-effort layer decoding.

    ``link`` is None only when the link type is unsupported or the frame
    is too short to hold a link header; ``quality_flags`` records why.
    """
    timestamp: datetime
    wire_length: int
    """Bytes on the wire (original frame size)"""
    link_type: int
    data: bytes = b""
    link: Optional[LinkLayer] = None
    quality_flags: int = 0

    @property
    def network(self) -> Optional[NetworkLayer]:
        return self.link.payload if self.link is not None else None

    @property
    def transport(self) -> Optional[TransportLayer]:
        network = self.network
        if isinstance(network, (IPv4Layer, IPv6Layer)):
            return network.payload
        return None

    @property
    def stack_summary(self) -> str:
        """String representation of the layer stack, e.g. ETH/IP4/TCP."""
        names = []
        layer = self.link
        while layer is not None and not isinstance(layer, bytes):
            names.append(_LAYER_NAMES.get(type(layer), type(layer).__name__))
            layer = getattr(layer, "payload", None)
        return "/".join(names) if names else "unknown"


_LAYER_NAMES = {
    EthernetLayer: "ETH",
    CookedLayer: "SLL",
    NullLayer: "NULL",
    IPv4Layer: "IP4",
    IPv6Layer: "IP6",
    ArpLayer: "ARP",
    TcpLayer: "TCP",
    UdpLayer: "UDP",
    IcmpLayer: "ICMP",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def timestamp_from_epoch(seconds: Optional[float]) -> datetime:
    """Convert a capture timestamp (seconds since epoch) to an aware datetime."""
    if seconds is None:
        return utc_now()
    return datetime.fromtimestamp(float(seconds), tz=timezone.utc)
