"""
Live packet capture subsystem.
"""

from .icapture_backend import ICaptureBackend, CaptureConfig, CaptureHandle, CaptureOpenError
from .packet_decoder import decode_packet, DecodeQuality
from .scapy_backend import ScapyBackend

__all__ = [
    'ICaptureBackend',
    'CaptureConfig',
    'CaptureHandle',
    'CaptureOpenError',
    'decode_packet',
    'DecodeQuality',
    'ScapyBackend',
]
