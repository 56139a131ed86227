"""
impcentral data models.
"""

from impcentral.models.log_stream import (
    LogStream, LogStreamCallbacks, LogStreamFormat, StreamState, MAX_DEVICES_PER_STREAM
)

__all__ = ["LogStream", "LogStreamCallbacks", "LogStreamFormat", "StreamState",
           "MAX_DEVICES_PER_STREAM"]
