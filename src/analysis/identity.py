"""
Application-layer identity extraction.

Pulls a hostname out of plaintext HTTP headers or the first question of
a DNS message. Absence is the normal outcome (HTTPS payloads are
encrypted); nothing here raises.
"""
import logging
import re
from typing import Optional

from scapy.layers.dns import DNS

from models.packet import DecodedPacket, ProtocolTag, TcpLayer, UdpLayer

logger = logging.getLogger(__name__)

_HOST_HEADER = re.compile(rb"^host[ \t]*:[ \t]*([^\r\n]*)", re.IGNORECASE | re.MULTILINE)


def extract_http_host(payload: bytes) -> Optional[str]:
    """Value of the first ``Host:`` header line, trimmed."""
    if not payload:
        return None
    match = _HOST_HEADER.search(payload)
    if match is None:
        return None
    host = match.group(1).decode("latin-1").strip()
    return host or None


def extract_dns_query(payload: bytes) -> Optional[str]:
    """First question name of a DNS message, without the trailing dot."""
    if not payload:
        return None
    try:
        message = DNS(payload)
        if not message.qdcount or message.qd is None:
            return None
        qname = message.qd[0].qname
    except Exception as e:
        logger.debug("DNS payload not decodable: %s", e)
        return None
    if isinstance(qname, bytes):
        qname = qname.decode("utf-8", errors="replace")
    qname = qname.rstrip(".")
    return qname or None


def extract_hostname(packet: DecodedPacket, protocol: ProtocolTag) -> Optional[str]:
    transport = packet.transport
    if protocol in (ProtocolTag.HTTP, ProtocolTag.HTTPS):
        if isinstance(transport, TcpLayer):
            return extract_http_host(transport.payload)
        return None
    if protocol == ProtocolTag.DNS:
        if isinstance(transport, UdpLayer):
            return extract_dns_query(transport.payload)
        return None
    return None
