"""
Data models for LogStreams.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional
from enum import Enum

from impcentral.errors import ImpCentralError

# The server keeps at most this many devices attached to one LogStream and
# silently drops the least recently added one beyond it.
MAX_DEVICES_PER_STREAM = 5


class LogStreamFormat(str, Enum):
    """Format of the log messages delivered by a LogStream."""
    TEXT = "text"
    JSON = "json"


class StreamState(Enum):
    """Lifecycle of a LogStream."""
    PENDING = "pending"  # Created on the server, connection not open yet
    OPEN = "open"        # Registered, receiving events
    CLOSED = "closed"    # Terminal


@dataclass(frozen=True)
class LogStreamCallbacks:
    """Handlers captured when the LogStream is created."""
    on_message: Callable[[str], None]
    on_state_change: Optional[Callable[[str], None]] = None
    on_error: Optional[Callable[[ImpCentralError], None]] = None


@dataclass
class LogStream:
    """An active server push channel for device logs."""

    id: str
    format: LogStreamFormat
    callbacks: LogStreamCallbacks
    connection: Any = None  # EventConnection, owned by this stream
    state: StreamState = StreamState.PENDING

    @property
    def is_open(self) -> bool:
        return self.state == StreamState.OPEN
