"""Per-packet composition: decode -> classify -> identify -> describe."""
from models.descriptor import PacketDescriptor
from models.packet import RawFrame
from capture.packet_decoder import decode_packet

from .classifier import classify
from .descriptor_builder import build_descriptor
from .identity import extract_hostname


def describe_frame(frame: RawFrame, include_raw: bool = False) -> PacketDescriptor:
    packet = decode_packet(frame)
    protocol = classify(packet)
    hostname = extract_hostname(packet, protocol)
    return build_descriptor(packet, protocol, hostname, include_raw=include_raw)
