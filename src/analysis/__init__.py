"""
Packet classification and traffic aggregation engine.
"""

from .classifier import classify
from .identity import extract_hostname
from .descriptor_builder import build_descriptor, UNPARSABLE_INFO
from .aggregator import TrafficAggregator
from .pipeline import describe_frame

__all__ = [
    'classify',
    'extract_hostname',
    'build_descriptor',
    'UNPARSABLE_INFO',
    'TrafficAggregator',
    'describe_frame',
]
