"""
Descriptor builder.

Turns a classified packet into a PacketDescriptor. Each protocol has a
formatter that returns the info line, or None when the fields it needs
are not available; None degrades to UNPARSABLE_INFO and the descriptor
is still produced.
"""
import logging
import uuid
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

from models.descriptor import PacketDescriptor
from models.packet import (
    ArpLayer,
    DecodedPacket,
    IcmpLayer,
    IPv4Layer,
    IPv6Layer,
    ProtocolTag,
    TcpLayer,
    UdpLayer,
)
from utils.net import format_endpoint, format_hw_endpoint

logger = logging.getLogger(__name__)

UNPARSABLE_INFO = "Unable to parse packet details"
HTTP_LABEL = "HTTP Request/Response"
HTTPS_LABEL = "TLS Encrypted Data"
DNS_FALLBACK = "DNS Query/Response"

ARP_REQUEST = 1

Formatter = Callable[[DecodedPacket, Optional[str]], Optional[str]]


def _with_host(info: str, hostname: Optional[str]) -> str:
    if hostname:
        return f"Host: {hostname} - {info}"
    return info


def _format_tcp(packet: DecodedPacket, hostname: Optional[str]) -> Optional[str]:
    tcp = packet.transport
    if not isinstance(tcp, TcpLayer):
        return None
    summary = f"Seq={tcp.seq} Ack={tcp.ack} Win={tcp.window} Len={len(tcp.payload)}"
    if tcp.flag_names:
        summary = "[" + ", ".join(tcp.flag_names) + "] " + summary
    return _with_host(summary, hostname)


def _format_udp(packet: DecodedPacket, hostname: Optional[str]) -> Optional[str]:
    udp = packet.transport
    if not isinstance(udp, UdpLayer):
        return None
    return _with_host(f"Length={udp.length}", hostname)


def _format_http(packet: DecodedPacket, hostname: Optional[str]) -> Optional[str]:
    return _with_host(HTTP_LABEL, hostname)


def _format_https(packet: DecodedPacket, hostname: Optional[str]) -> Optional[str]:
    return _with_host(HTTPS_LABEL, hostname)


def _format_dns(packet: DecodedPacket, hostname: Optional[str]) -> Optional[str]:
    if hostname:
        return f"Query: {hostname}"
    return DNS_FALLBACK


def _format_icmp(packet: DecodedPacket, hostname: Optional[str]) -> Optional[str]:
    icmp = packet.transport
    if not isinstance(icmp, IcmpLayer):
        return None
    return f"Type={icmp.type} Code={icmp.code}"


def _format_arp(packet: DecodedPacket, hostname: Optional[str]) -> Optional[str]:
    arp = packet.network
    if not isinstance(arp, ArpLayer) or not arp.target_ip:
        return None
    verb = "Who has" if arp.operation == ARP_REQUEST else "Reply"
    return f"{verb} {arp.target_ip}"


def _format_unknown(packet: DecodedPacket, hostname: Optional[str]) -> Optional[str]:
    return ""


FORMATTERS: Dict[ProtocolTag, Formatter] = {
    ProtocolTag.TCP: _format_tcp,
    ProtocolTag.UDP: _format_udp,
    ProtocolTag.HTTP: _format_http,
    ProtocolTag.HTTPS: _format_https,
    ProtocolTag.DNS: _format_dns,
    ProtocolTag.ICMP: _format_icmp,
    ProtocolTag.ARP: _format_arp,
    ProtocolTag.UNKNOWN: _format_unknown,
}


def describe(packet: DecodedPacket, protocol: ProtocolTag, hostname: Optional[str] = None) -> str:
    """Human-readable one-line summary; never raises."""
    formatter = FORMATTERS.get(protocol, _format_unknown)
    try:
        info = formatter(packet, hostname)
    except Exception as e:
        logger.debug("Formatter for %s failed: %s", protocol, e)
        info = None
    return UNPARSABLE_INFO if info is None else info


def extract_addresses(packet: DecodedPacket, protocol: ProtocolTag) -> Tuple[str, str]:
    """Source/destination strings: ``ip (mac)`` for ARP, ``ip:port`` or bare ``ip`` otherwise."""
    network = packet.network
    if isinstance(network, ArpLayer):
        return (
            format_hw_endpoint(network.sender_ip, network.sender_mac),
            format_hw_endpoint(network.target_ip, network.target_mac),
        )
    if isinstance(network, (IPv4Layer, IPv6Layer)):
        transport = network.payload
        if isinstance(transport, (TcpLayer, UdpLayer)):
            return (
                format_endpoint(network.src, transport.src_port),
                format_endpoint(network.dst, transport.dst_port),
            )
        return format_endpoint(network.src), format_endpoint(network.dst)
    return "", ""


def build_descriptor(packet: DecodedPacket,
                     protocol: ProtocolTag,
                     hostname: Optional[str] = None,
                     timestamp: Optional[datetime] = None,
                     include_raw: bool = False) -> PacketDescriptor:
    """
    Assemble the descriptor for one packet.

    A fresh id is generated on every call. The timestamp defaults to the
    capture instant carried by the decoded packet.
    """
    source, destination = extract_addresses(packet, protocol)
    return PacketDescriptor(
        id=str(uuid.uuid4()),
        timestamp=timestamp or packet.timestamp,
        source=source,
        destination=destination,
        protocol=protocol,
        size=max(0, packet.wire_length),
        info=describe(packet, protocol, hostname),
        hostname=hostname,
        raw=packet.data.hex() if include_raw else "",
    )
