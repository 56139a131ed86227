"""
Core services: the LogStreams subsystem and its stream registry.
"""

from .stream_registry import StreamRegistry
from .log_streams import LogStreams

__all__ = [
    'StreamRegistry',
    'LogStreams'
]
