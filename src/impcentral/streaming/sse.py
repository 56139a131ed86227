"""
Parser for the server-sent events line protocol (text/event-stream).
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional


@dataclass
class ServerSentEvent:
    """One dispatched event."""
    data: str
    event: str = "message"
    id: Optional[str] = None
    retry: Optional[int] = None  # Reconnection time in milliseconds


def parse_events(lines: Iterable[str]) -> Iterator[ServerSentEvent]:
    """
    Turn decoded stream lines into events.

    Lines are expected without their line terminator. An event is dispatched
    on each blank line; blocks without any data field are dropped, except that
    their id and retry fields still take effect on the next event.
    """
    data_lines = []
    event_type = ""
    last_id: Optional[str] = None
    retry: Optional[int] = None

    for line in lines:
        if line is None:
            continue
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")

        if line == "":
            if data_lines:
                yield ServerSentEvent(
                    data="\n".join(data_lines),
                    event=event_type or "message",
                    id=last_id,
                    retry=retry
                )
                retry = None
            data_lines = []
            event_type = ""
            continue

        if line.startswith(":"):
            # Comment / keep-alive
            continue

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "data":
            data_lines.append(value)
        elif field == "event":
            event_type = value
        elif field == "id":
            if "\0" not in value:
                last_id = value
        elif field == "retry":
            if value.isdigit():
                retry = int(value)
