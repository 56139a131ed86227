"""
Registry of open LogStreams.
"""

from threading import Lock
from typing import Dict, List, Optional
import logging

from impcentral.errors import InvalidStateError
from impcentral.models.log_stream import LogStream

logger = logging.getLogger(__name__)


class StreamRegistry:
    """
    Maps LogStream ids to open streams.

    Written by LogStreams.create()/close() and read from connection reader
    threads, so every access holds the lock.
    """

    def __init__(self):
        self._streams: Dict[str, LogStream] = {}
        self._lock = Lock()

    def register(self, stream_id: str, stream: LogStream):
        """Add an open stream. The id must not be registered yet."""
        with self._lock:
            if stream_id in self._streams:
                raise InvalidStateError(f'LogStream "{stream_id}" is already registered')
            self._streams[stream_id] = stream
        logger.debug(f"StreamRegistry: Registered {stream_id}")

    def lookup(self, stream_id: str) -> Optional[LogStream]:
        """Get a registered stream, or None."""
        with self._lock:
            return self._streams.get(stream_id)

    def unregister(self, stream_id: str) -> Optional[LogStream]:
        """Remove and return a registered stream, or None if it is not there."""
        with self._lock:
            stream = self._streams.pop(stream_id, None)
        if stream is not None:
            logger.debug(f"StreamRegistry: Unregistered {stream_id}")
        return stream

    def ids(self) -> List[str]:
        """Get the ids of all registered streams."""
        with self._lock:
            return list(self._streams)

    def __contains__(self, stream_id: str) -> bool:
        with self._lock:
            return stream_id in self._streams

    def __len__(self) -> int:
        with self._lock:
            return len(self._streams)
