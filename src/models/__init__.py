"""
Packet and traffic data models.
"""

from .packet import (
    ProtocolTag,
    RawFrame,
    DecodedPacket,
    EthernetLayer,
    CookedLayer,
    NullLayer,
    IPv4Layer,
    IPv6Layer,
    ArpLayer,
    TcpLayer,
    UdpLayer,
    IcmpLayer,
)
from .descriptor import PacketDescriptor
from .stats import UserStats, SiteSession

__all__ = [
    'ProtocolTag',
    'RawFrame',
    'DecodedPacket',
    'EthernetLayer',
    'CookedLayer',
    'NullLayer',
    'IPv4Layer',
    'IPv6Layer',
    'ArpLayer',
    'TcpLayer',
    'UdpLayer',
    'IcmpLayer',
    'PacketDescriptor',
    'UserStats',
    'SiteSession',
]
