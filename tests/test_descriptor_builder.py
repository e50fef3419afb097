import unittest
from datetime import datetime, timezone
from unittest import mock

from analysis.descriptor_builder import (
    DNS_FALLBACK,
    FORMATTERS,
    HTTP_LABEL,
    HTTPS_LABEL,
    UNPARSABLE_INFO,
    build_descriptor,
    describe,
    extract_addresses,
)
from analysis.pipeline import describe_frame
from capture.packet_decoder import decode_packet
from models.descriptor import PacketDescriptor
from models.packet import DecodedPacket, EthernetLayer, IPv4Layer, ProtocolTag, TcpLayer, timestamp_from_epoch

import packet_builders as pb


class DescribeTests(unittest.TestCase):
    def test_tcp_flags_in_fixed_order(self):
        packet = decode_packet(pb.tcp_frame(dst_port=22, flags=0x3F, payload=b"abc"))
        info = describe(packet, ProtocolTag.TCP)
        self.assertEqual(info, "[SYN, ACK, FIN, RST, PSH, URG] Seq=1 Ack=1 Win=1024 Len=3")

    def test_tcp_without_flags(self):
        packet = decode_packet(pb.tcp_frame(dst_port=22, flags=0))
        self.assertEqual(describe(packet, ProtocolTag.TCP), "Seq=1 Ack=1 Win=1024 Len=0")

    def test_tcp_with_hostname(self):
        packet = decode_packet(pb.tcp_frame(dst_port=22, flags=0x10))
        self.assertEqual(describe(packet, ProtocolTag.TCP, "example.com"),
                         "Host: example.com - [ACK] Seq=1 Ack=1 Win=1024 Len=0")

    def test_udp(self):
        packet = decode_packet(pb.udp_frame(dst_port=123, payload=b"\x00" * 48))
        self.assertEqual(describe(packet, ProtocolTag.UDP), "Length=56")

    def test_http_and_https_labels(self):
        packet = decode_packet(pb.tcp_frame())
        self.assertEqual(describe(packet, ProtocolTag.HTTP), HTTP_LABEL)
        self.assertEqual(describe(packet, ProtocolTag.HTTP, "example.com"), f"Host: example.com - {HTTP_LABEL}")
        self.assertEqual(describe(packet, ProtocolTag.HTTPS), HTTPS_LABEL)

    def test_dns(self):
        packet = decode_packet(pb.udp_frame())
        self.assertEqual(describe(packet, ProtocolTag.DNS, "example.net"), "Query: example.net")
        self.assertEqual(describe(packet, ProtocolTag.DNS), DNS_FALLBACK)

    def test_icmp(self):
        packet = decode_packet(pb.icmp_frame(icmp_type=0, code=0))
        self.assertEqual(describe(packet, ProtocolTag.ICMP), "Type=0 Code=0")

    def test_arp_request_and_reply(self):
        self.assertEqual(describe(decode_packet(pb.arp_frame(1)), ProtocolTag.ARP), "Who has 192.168.1.1")
        self.assertEqual(describe(decode_packet(pb.arp_frame(2)), ProtocolTag.ARP), "Reply 192.168.1.1")

    def test_unknown_is_empty(self):
        self.assertEqual(describe(decode_packet(pb.frame(b"\x00")), ProtocolTag.UNKNOWN), "")

    def test_mismatched_shape_falls_back(self):
        packet = decode_packet(pb.udp_frame(dst_port=123))
        self.assertEqual(describe(packet, ProtocolTag.TCP), UNPARSABLE_INFO)
        self.assertEqual(describe(packet, ProtocolTag.ARP), UNPARSABLE_INFO)

    def test_formatter_exception_falls_back(self):
        broken = TcpLayer(1000, 22, flags="not-a-bitmask")
        packet = DecodedPacket(
            timestamp=timestamp_from_epoch(0),
            wire_length=60,
            link_type=1,
            link=EthernetLayer("a", "b", 0x0800, payload=IPv4Layer("10.0.0.1", "10.0.0.2", 6, payload=broken)),
        )
        self.assertEqual(describe(packet, ProtocolTag.TCP), UNPARSABLE_INFO)
        self.assertEqual(build_descriptor(packet, ProtocolTag.TCP).source, "10.0.0.1:1000")

    def test_any_formatter_error_falls_back(self):
        def lookup_fails(packet, hostname):
            return {}["missing"]

        packet = decode_packet(pb.icmp_frame())
        with mock.patch.dict(FORMATTERS, {ProtocolTag.ICMP: lookup_fails}):
            self.assertEqual(describe(packet, ProtocolTag.ICMP), UNPARSABLE_INFO)
            descriptor = build_descriptor(packet, ProtocolTag.ICMP)
        self.assertEqual(descriptor.info, UNPARSABLE_INFO)
        self.assertEqual(descriptor.source, "192.168.1.10")


class AddressTests(unittest.TestCase):
    def test_ip_and_port(self):
        packet = decode_packet(pb.tcp_frame(src="10.0.0.5", src_port=51000))
        self.assertEqual(extract_addresses(packet, ProtocolTag.HTTP), ("10.0.0.5:51000", "93.184.216.34:80"))

    def test_bare_ip_without_ports(self):
        packet = decode_packet(pb.icmp_frame(src="10.0.0.5", dst="8.8.4.4"))
        self.assertEqual(extract_addresses(packet, ProtocolTag.ICMP), ("10.0.0.5", "8.8.4.4"))

    def test_ipv6_bracketed(self):
        data = pb.ethernet(pb.ipv6(pb.tcp(src_port=40000, dst_port=443)), ethertype=0x86DD)
        packet = decode_packet(pb.frame(data))
        self.assertEqual(extract_addresses(packet, ProtocolTag.HTTPS), ("[fe80::1]:40000", "[2001:db8::1]:443"))

    def test_arp_ip_and_mac(self):
        frame = pb.frame(pb.ethernet(pb.arp(sender_mac=b"\xaa\xbb\xcc\xdd\xee\xff"), ethertype=0x0806))
        source, destination = extract_addresses(decode_packet(frame), ProtocolTag.ARP)
        self.assertEqual(source, "192.168.1.10 (aa:bb:cc:dd:ee:ff)")
        self.assertEqual(destination, "192.168.1.1 (00:00:00:00:00:00)")

    def test_undecodable(self):
        self.assertEqual(extract_addresses(decode_packet(pb.frame(b"")), ProtocolTag.UNKNOWN), ("", ""))


class BuildDescriptorTests(unittest.TestCase):
    def test_http_example(self):
        frame = pb.tcp_frame(src="10.0.0.5", src_port=51000, payload=pb.http_request("example.com"),
                             wire_length=512)
        descriptor = describe_frame(frame)

        self.assertEqual(descriptor.protocol, ProtocolTag.HTTP)
        self.assertEqual(descriptor.source, "10.0.0.5:51000")
        self.assertEqual(descriptor.destination, "93.184.216.34:80")
        self.assertEqual(descriptor.size, 512)
        self.assertEqual(descriptor.hostname, "example.com")
        self.assertTrue(descriptor.info.startswith("Host: example.com"))

    def test_arp_example(self):
        frame = pb.frame(pb.ethernet(pb.arp(sender_mac=b"\xaa\xbb\xcc\xdd\xee\xff"), ethertype=0x0806))
        descriptor = describe_frame(frame)
        self.assertEqual(descriptor.protocol, ProtocolTag.ARP)
        self.assertEqual(descriptor.source, "192.168.1.10 (aa:bb:cc:dd:ee:ff)")
        self.assertEqual(descriptor.info, "Who has 192.168.1.1")

    def test_fresh_id_per_build(self):
        packet = decode_packet(pb.tcp_frame())
        first = build_descriptor(packet, ProtocolTag.HTTP)
        second = build_descriptor(packet, ProtocolTag.HTTP)
        self.assertNotEqual(first.id, second.id)

    def test_timestamp_defaults_to_capture_time(self):
        packet = decode_packet(pb.tcp_frame(timestamp=1700000000.0))
        descriptor = build_descriptor(packet, ProtocolTag.HTTP)
        self.assertEqual(descriptor.timestamp, datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc))

    def test_raw_only_when_requested(self):
        frame = pb.tcp_frame()
        self.assertEqual(describe_frame(frame).raw, "")
        self.assertEqual(describe_frame(frame, include_raw=True).raw, frame.data.hex())

    def test_malformed_still_described(self):
        descriptor = describe_frame(pb.frame(b"\xde\xad"))
        self.assertEqual(descriptor.protocol, ProtocolTag.UNKNOWN)
        self.assertEqual(descriptor.size, 2)
        self.assertEqual((descriptor.source, descriptor.destination), ("", ""))


class DescriptorModelTests(unittest.TestCase):
    def test_dict_round_trip(self):
        descriptor = describe_frame(pb.tcp_frame(payload=pb.http_request("example.com")))
        payload = descriptor.to_dict()
        self.assertEqual(payload["protocol"], "HTTP")
        self.assertIsInstance(payload["timestamp"], str)
        self.assertEqual(PacketDescriptor.from_dict(payload), descriptor)

    def test_from_dict_accepts_z_suffix(self):
        payload = describe_frame(pb.tcp_frame()).to_dict()
        payload["timestamp"] = "2024-01-01T12:00:00.123Z"
        descriptor = PacketDescriptor.from_dict(payload)
        self.assertEqual(descriptor.timestamp, datetime(2024, 1, 1, 12, 0, 0, 123000, tzinfo=timezone.utc))

    def test_negative_size_rejected(self):
        with self.assertRaises(ValueError):
            PacketDescriptor(id="x", timestamp=timestamp_from_epoch(0), source="", destination="",
                             protocol=ProtocolTag.TCP, size=-1)

    def test_protocol_coerced(self):
        descriptor = PacketDescriptor(id="x", timestamp=timestamp_from_epoch(0), source="", destination="",
                                      protocol="DNS", size=1)
        self.assertIs(descriptor.protocol, ProtocolTag.DNS)


if __name__ == "__main__":
    unittest.main()
