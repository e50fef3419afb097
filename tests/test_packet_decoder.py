import struct
import unittest
from datetime import timezone

from capture.packet_decoder import (
    DLT_LINUX_SLL,
    DLT_NULL,
    DLT_RAW,
    DecodeQuality,
    decode_packet,
    quality_flag_names,
)
from models.packet import ArpLayer, EthernetLayer, IcmpLayer, IPv4Layer, IPv6Layer, TcpLayer, UdpLayer

import packet_builders as pb


class DecodeEthernetTests(unittest.TestCase):
    def test_ipv4_tcp(self):
        packet = decode_packet(pb.tcp_frame(payload=b"hello", flags=0x12))

        self.assertIsInstance(packet.link, EthernetLayer)
        self.assertEqual(packet.link.src_mac, "11:22:33:44:55:66")
        self.assertIsInstance(packet.network, IPv4Layer)
        self.assertEqual(packet.network.src, "192.168.1.10")
        self.assertEqual(packet.network.dst, "93.184.216.34")
        tcp = packet.transport
        self.assertIsInstance(tcp, TcpLayer)
        self.assertEqual((tcp.src_port, tcp.dst_port), (51000, 80))
        self.assertEqual(tcp.flag_names, ("SYN", "ACK"))
        self.assertEqual(tcp.payload, b"hello")
        self.assertEqual(packet.quality_flags, 0)
        self.assertEqual(packet.stack_summary, "ETH/IP4/TCP")

    def test_timestamp_is_capture_instant(self):
        packet = decode_packet(pb.tcp_frame(timestamp=1700000000.25))
        self.assertEqual(packet.timestamp.tzinfo, timezone.utc)
        self.assertAlmostEqual(packet.timestamp.timestamp(), 1700000000.25)

    def test_wire_length_prefers_original_length(self):
        frame = pb.tcp_frame(wire_length=1500)
        packet = decode_packet(frame)
        self.assertEqual(packet.wire_length, 1500)
        self.assertTrue(packet.quality_flags & DecodeQuality.TRUNCATED)

    def test_udp(self):
        packet = decode_packet(pb.udp_frame(payload=b"abcd"))
        self.assertIsInstance(packet.transport, UdpLayer)
        self.assertEqual(packet.transport.length, 12)
        self.assertEqual(packet.transport.payload, b"abcd")

    def test_icmp(self):
        packet = decode_packet(pb.icmp_frame(icmp_type=3, code=1))
        self.assertIsInstance(packet.transport, IcmpLayer)
        self.assertEqual((packet.transport.type, packet.transport.code), (3, 1))

    def test_arp(self):
        packet = decode_packet(pb.arp_frame())
        arp = packet.network
        self.assertIsInstance(arp, ArpLayer)
        self.assertEqual(arp.operation, 1)
        self.assertEqual(arp.sender_ip, "192.168.1.10")
        self.assertEqual(arp.target_ip, "192.168.1.1")
        self.assertIsNone(packet.transport)

    def test_vlan_tag(self):
        data = pb.ethernet(pb.ipv4(pb.tcp()), vlan_ids=(42,))
        packet = decode_packet(pb.frame(data))
        self.assertEqual(packet.link.vlan_ids, (42,))
        self.assertIsInstance(packet.transport, TcpLayer)

    def test_ipv6_tcp(self):
        data = pb.ethernet(pb.ipv6(pb.tcp(dst_port=443)), ethertype=0x86DD)
        packet = decode_packet(pb.frame(data))
        self.assertIsInstance(packet.network, IPv6Layer)
        self.assertEqual(packet.network.src, "fe80::1")
        self.assertEqual(packet.transport.dst_port, 443)

    def test_ethernet_padding_trimmed(self):
        data = pb.ethernet(pb.ipv4(pb.tcp(payload=b"x"))) + b"\x00" * 10
        packet = decode_packet(pb.frame(data))
        self.assertEqual(packet.transport.payload, b"x")


class DecodeMalformedTests(unittest.TestCase):
    def test_short_ethernet(self):
        packet = decode_packet(pb.frame(b"\x00\x01\x02"))
        self.assertIsNone(packet.link)
        self.assertIn("MALFORMED_L2", quality_flag_names(packet.quality_flags))

    def test_truncated_ipv4(self):
        data = pb.ethernet(pb.ipv4(pb.tcp()))[:20]
        packet = decode_packet(pb.frame(data))
        self.assertIsNone(packet.network)
        self.assertTrue(packet.quality_flags & DecodeQuality.MALFORMED_L3)

    def test_truncated_tcp(self):
        data = pb.ethernet(pb.ipv4(pb.tcp()))[:14 + 20 + 10]
        packet = decode_packet(pb.frame(data))
        self.assertIsInstance(packet.network, IPv4Layer)
        self.assertIsNone(packet.transport)
        self.assertTrue(packet.quality_flags & DecodeQuality.MALFORMED_L4)

    def test_unknown_ethertype(self):
        packet = decode_packet(pb.frame(pb.ethernet(b"\x00" * 30, ethertype=0x88CC)))
        self.assertIsNone(packet.network)
        self.assertTrue(packet.quality_flags & DecodeQuality.UNKNOWN_L3)

    def test_unsupported_link_type(self):
        packet = decode_packet(pb.frame(b"\x00" * 40, link_type=147))
        self.assertIsNone(packet.link)
        self.assertTrue(packet.quality_flags & DecodeQuality.UNSUPPORTED_LINKTYPE)

    def test_empty_frame(self):
        packet = decode_packet(pb.frame(b""))
        self.assertEqual(packet.wire_length, 0)
        self.assertEqual(packet.stack_summary, "unknown")


class DecodeOtherLinkTypesTests(unittest.TestCase):
    def test_raw_ip(self):
        packet = decode_packet(pb.frame(pb.ipv4(pb.udp(), protocol=17), link_type=DLT_RAW))
        self.assertIsInstance(packet.transport, UdpLayer)

    def test_bsd_loopback(self):
        data = struct.pack("<I", 2) + pb.ipv4(pb.tcp(), src="127.0.0.1", dst="127.0.0.1")
        packet = decode_packet(pb.frame(data, link_type=DLT_NULL))
        self.assertEqual(packet.network.src, "127.0.0.1")

    def test_linux_cooked(self):
        sll = struct.pack("!HHH", 0, 1, 6) + pb.ETH_SRC + b"\x00\x00" + struct.pack("!H", 0x0800)
        packet = decode_packet(pb.frame(sll + pb.ipv4(pb.tcp()), link_type=DLT_LINUX_SLL))
        self.assertEqual(packet.link.src_mac, "11:22:33:44:55:66")
        self.assertEqual(packet.stack_summary, "SLL/IP4/TCP")


class QualityFlagNamesTests(unittest.TestCase):
    def test_ok(self):
        self.assertEqual(quality_flag_names(0), ("OK",))

    def test_combined(self):
        flags = DecodeQuality.TRUNCATED | DecodeQuality.MALFORMED_L4
        self.assertEqual(quality_flag_names(flags), ("TRUNCATED", "MALFORMED_L4"))


if __name__ == "__main__":
    unittest.main()
