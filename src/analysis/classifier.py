"""
Protocol classifier.

Maps a decoded packet to exactly one ProtocolTag. Port-based promotion
(80 -> HTTP, 443 -> HTTPS, 53 -> DNS) is a heuristic, not a protocol
parse: other protocols on those ports are classified the same way.
"""
from models.packet import (
    ArpLayer,
    DecodedPacket,
    IcmpLayer,
    ProtocolTag,
    TcpLayer,
    UdpLayer,
)

HTTP_PORT = 80
HTTPS_PORT = 443
DNS_PORT = 53


def _uses_port(transport, port: int) -> bool:
    return transport.src_port == port or transport.dst_port == port


def classify(packet: DecodedPacket) -> ProtocolTag:
    """Classify ``packet``; unrecognized shapes map to UNKNOWN. Never raises."""
    network = packet.network
    transport = packet.transport

    if isinstance(transport, IcmpLayer):
        return ProtocolTag.ICMP

    if isinstance(transport, TcpLayer):
        if _uses_port(transport, HTTP_PORT):
            return ProtocolTag.HTTP
        if _uses_port(transport, HTTPS_PORT):
            return ProtocolTag.HTTPS
        return ProtocolTag.TCP

    if isinstance(transport, UdpLayer):
        if _uses_port(transport, DNS_PORT):
            return ProtocolTag.DNS
        return ProtocolTag.UDP

    if isinstance(network, ArpLayer):
        return ProtocolTag.ARP

    return ProtocolTag.UNKNOWN
