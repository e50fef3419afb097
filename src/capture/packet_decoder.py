"""
Pure packet decoding logic (L2/L3/L4 MVP).

This module is deterministic and best-effort:
- It never throws on malformed/truncated packets
- It returns quality flags to describe decode issues
- It only parses headers; transport payload bytes are sliced, not parsed

The result is a tree of frozen layer objects (see models.packet).
"""
from __future__ import annotations

from enum import IntFlag
import ipaddress
import struct
from typing import Optional, Tuple

from models.packet import (
    ArpLayer,
    CookedLayer,
    DecodedPacket,
    EthernetLayer,
    IcmpLayer,
    IPv4Layer,
    IPv6Layer,
    NetworkLayer,
    NullLayer,
    RawFrame,
    TcpLayer,
    TransportLayer,
    UdpLayer,
    timestamp_from_epoch,
)

# Link type constants (libpcap DLT_* / LINKTYPE_*)
DLT_NULL = 0
DLT_EN10MB = 1
DLT_RAW = 12
DLT_LOOP = 108
DLT_LINUX_SLL = 113
LINKTYPE_RAW = 101

# EtherType constants
ETH_TYPE_IPV4 = 0x0800
ETH_TYPE_ARP = 0x0806
ETH_TYPE_IPV6 = 0x86DD
ETH_TYPE_VLAN = 0x8100
ETH_TYPE_QINQ = 0x88A8

# IP protocol numbers
IP_PROTO_ICMP = 1
IP_PROTO_TCP = 6
IP_PROTO_UDP = 17
IP_PROTO_ICMPV6 = 58

# BSD loopback address families (AF_INET, then the platform AF_INET6 values)
AF_INET = 2
AF_INET6_VALUES = (10, 24, 28, 30)


class DecodeQuality(IntFlag):
    OK = 0
    TRUNCATED = 1 << 0
    UNSUPPORTED_LINKTYPE = 1 << 1
    MALFORMED_L2 = 1 << 2
    MALFORMED_L3 = 1 << 3
    MALFORMED_L4 = 1 << 4
    UNKNOWN_L3 = 1 << 5
    UNKNOWN_L4 = 1 << 6


def quality_flag_names(flags: int) -> Tuple[str, ...]:
    """Return decode quality flag names for display."""
    if flags == 0:
        return ("OK",)
    names = []
    for flag in DecodeQuality:
        if flag != DecodeQuality.OK and (flags & flag):
            names.append(flag.name)
    return tuple(names)


def decode_packet(raw: RawFrame) -> DecodedPacket:
    """Decode a RawFrame into a DecodedPacket (best-effort)."""
    data = raw.data or b""

    quality = DecodeQuality.OK
    if raw.is_truncated:
        quality |= DecodeQuality.TRUNCATED

    if raw.link_type == DLT_EN10MB:
        link, link_quality = _parse_ethernet(data)
    elif raw.link_type == DLT_LINUX_SLL:
        link, link_quality = _parse_sll(data)
    elif raw.link_type in (DLT_RAW, LINKTYPE_RAW):
        link, link_quality = _parse_raw_ip(data)
    elif raw.link_type in (DLT_NULL, DLT_LOOP):
        link, link_quality = _parse_null(data, big_endian=raw.link_type == DLT_LOOP)
    else:
        link, link_quality = None, DecodeQuality.UNSUPPORTED_LINKTYPE
    quality |= link_quality

    return DecodedPacket(
        timestamp=timestamp_from_epoch(raw.timestamp),
        wire_length=raw.original_length,
        link_type=raw.link_type,
        data=data,
        link=link,
        quality_flags=int(quality),
    )


# ---------- L2 ----------

def _parse_ethernet(data: bytes) -> Tuple[Optional[EthernetLayer], DecodeQuality]:
    if len(data) < 14:
        return None, DecodeQuality.MALFORMED_L2
    dst_mac = _format_mac(data[0:6])
    src_mac = _format_mac(data[6:12])
    ethertype = struct.unpack_from("!H", data, 12)[0]
    offset = 14

    # VLAN tags (single or double)
    vlan_ids = []
    for _ in range(2):
        if ethertype not in (ETH_TYPE_VLAN, ETH_TYPE_QINQ):
            break
        if len(data) < offset + 4:
            return EthernetLayer(src_mac, dst_mac, ethertype, tuple(vlan_ids)), DecodeQuality.MALFORMED_L2
        tci, ethertype = struct.unpack_from("!HH", data, offset)
        vlan_ids.append(tci & 0x0FFF)
        offset += 4

    network, quality = _parse_network(data, offset, ethertype)
    return EthernetLayer(src_mac, dst_mac, ethertype, tuple(vlan_ids), network), quality


def _parse_sll(data: bytes) -> Tuple[Optional[CookedLayer], DecodeQuality]:
    if len(data) < 16:
        return None, DecodeQuality.MALFORMED_L2
    addr_len = struct.unpack_from("!H", data, 4)[0]
    src_mac = _format_mac(data[6:12]) if addr_len == 6 else None
    ethertype = struct.unpack_from("!H", data, 14)[0]
    network, quality = _parse_network(data, 16, ethertype)
    return CookedLayer(ethertype=ethertype, src_mac=src_mac, payload=network), quality


def _parse_raw_ip(data: bytes) -> Tuple[Optional[NullLayer], DecodeQuality]:
    if len(data) < 1:
        return None, DecodeQuality.MALFORMED_L3
    version = data[0] >> 4
    if version == 4:
        network, quality = _parse_network(data, 0, ETH_TYPE_IPV4)
    elif version == 6:
        network, quality = _parse_network(data, 0, ETH_TYPE_IPV6)
    else:
        network, quality = None, DecodeQuality.UNKNOWN_L3
    return NullLayer(family=0, payload=network), quality


def _parse_null(data: bytes, big_endian: bool = False) -> Tuple[Optional[NullLayer], DecodeQuality]:
    if len(data) < 4:
        return None, DecodeQuality.MALFORMED_L2
    family_le = struct.unpack_from("<I", data, 0)[0]
    family_be = struct.unpack_from(">I", data, 0)[0]
    if big_endian:
        family = family_be
    else:
        family = family_le if family_le in (AF_INET,) + AF_INET6_VALUES else family_be

    if family == AF_INET:
        network, quality = _parse_network(data, 4, ETH_TYPE_IPV4)
    elif family in AF_INET6_VALUES:
        network, quality = _parse_network(data, 4, ETH_TYPE_IPV6)
    else:
        network, quality = None, DecodeQuality.UNKNOWN_L3
    return NullLayer(family=family, payload=network), quality


# ---------- L3 ----------

def _parse_network(data: bytes, offset: int, ethertype: int) -> Tuple[Optional[NetworkLayer], DecodeQuality]:
    if ethertype == ETH_TYPE_IPV4:
        return _parse_ipv4(data, offset)
    if ethertype == ETH_TYPE_IPV6:
        return _parse_ipv6(data, offset)
    if ethertype == ETH_TYPE_ARP:
        return _parse_arp(data, offset)
    return None, DecodeQuality.UNKNOWN_L3


def _parse_ipv4(data: bytes, offset: int) -> Tuple[Optional[IPv4Layer], DecodeQuality]:
    cap_len = len(data)
    if offset + 20 > cap_len:
        return None, DecodeQuality.MALFORMED_L3
    vihl = data[offset]
    version = vihl >> 4
    ihl = (vihl & 0x0F) * 4
    if version != 4 or ihl < 20 or offset + ihl > cap_len:
        return None, DecodeQuality.MALFORMED_L3

    total_length = struct.unpack_from("!H", data, offset + 2)[0]
    ttl = data[offset + 8]
    ip_proto = data[offset + 9]
    src_ip = _format_ipv4(data[offset + 12:offset + 16])
    dst_ip = _format_ipv4(data[offset + 16:offset + 20])

    # Trim link-layer padding; a zero/short length field (TSO) means "to the end"
    end = cap_len
    if total_length >= ihl:
        end = min(cap_len, offset + total_length)

    transport, quality = _parse_l4(data, offset + ihl, end, ip_proto)
    return IPv4Layer(src_ip, dst_ip, ip_proto, ttl, transport), quality


def _parse_ipv6(data: bytes, offset: int) -> Tuple[Optional[IPv6Layer], DecodeQuality]:
    cap_len = len(data)
    if offset + 40 > cap_len:
        return None, DecodeQuality.MALFORMED_L3
    version = data[offset] >> 4
    if version != 6:
        return None, DecodeQuality.MALFORMED_L3

    payload_length = struct.unpack_from("!H", data, offset + 4)[0]
    next_header = data[offset + 6]
    hop_limit = data[offset + 7]
    src_ip = _format_ipv6(data[offset + 8:offset + 24])
    dst_ip = _format_ipv6(data[offset + 24:offset + 40])

    l4_offset = offset + 40
    end = min(cap_len, l4_offset + payload_length) if payload_length else cap_len
    transport, quality = _parse_l4(data, l4_offset, end, next_header)
    return IPv6Layer(src_ip, dst_ip, next_header, hop_limit, transport), quality


def _parse_arp(data: bytes, offset: int) -> Tuple[Optional[ArpLayer], DecodeQuality]:
    if offset + 8 > len(data):
        return None, DecodeQuality.MALFORMED_L3
    hlen = data[offset + 4]
    plen = data[offset + 5]
    operation = struct.unpack_from("!H", data, offset + 6)[0]
    if hlen != 6 or plen != 4 or offset + 28 > len(data):
        return None, DecodeQuality.MALFORMED_L3

    base = offset + 8
    return ArpLayer(
        operation=operation,
        sender_mac=_format_mac(data[base:base + 6]),
        sender_ip=_format_ipv4(data[base + 6:base + 10]),
        target_mac=_format_mac(data[base + 10:base + 16]),
        target_ip=_format_ipv4(data[base + 16:base + 20]),
    ), DecodeQuality.OK


# ---------- L4 ----------

def _parse_l4(data: bytes, offset: int, end: int, ip_protocol: int) -> Tuple[Optional[TransportLayer], DecodeQuality]:
    if ip_protocol == IP_PROTO_TCP:
        if offset + 20 > end:
            return None, DecodeQuality.MALFORMED_L4
        src_port, dst_port, seq, ack = struct.unpack_from("!HHII", data, offset)
        data_offset = (data[offset + 12] >> 4) * 4
        flags = data[offset + 13]
        window = struct.unpack_from("!H", data, offset + 14)[0]
        if data_offset < 20 or offset + data_offset > end:
            return TcpLayer(src_port, dst_port, seq, ack, window, flags), DecodeQuality.MALFORMED_L4
        payload = bytes(data[offset + data_offset:end])
        return TcpLayer(src_port, dst_port, seq, ack, window, flags, payload), DecodeQuality.OK

    if ip_protocol == IP_PROTO_UDP:
        if offset + 8 > end:
            return None, DecodeQuality.MALFORMED_L4
        src_port, dst_port, length = struct.unpack_from("!HHH", data, offset)
        return UdpLayer(src_port, dst_port, length, bytes(data[offset + 8:end])), DecodeQuality.OK

    if ip_protocol in (IP_PROTO_ICMP, IP_PROTO_ICMPV6):
        if offset + 2 > end:
            return None, DecodeQuality.MALFORMED_L4
        version = 4 if ip_protocol == IP_PROTO_ICMP else 6
        icmp_type, icmp_code = data[offset], data[offset + 1]
        return IcmpLayer(icmp_type, icmp_code, version, bytes(data[offset + 4:end])), DecodeQuality.OK

    return None, DecodeQuality.UNKNOWN_L4


def _format_mac(addr: bytes) -> str:
    return ":".join("{:02x}".format(b) for b in addr)


def _format_ipv4(addr: bytes) -> Optional[str]:
    if len(addr) != 4:
        return None
    return "{}.{}.{}.{}".format(addr[0], addr[1], addr[2], addr[3])


def _format_ipv6(addr: bytes) -> Optional[str]:
    if len(addr) != 16:
        return None
    try:
        return str(ipaddress.IPv6Address(addr))
    except ValueError:
        return None
