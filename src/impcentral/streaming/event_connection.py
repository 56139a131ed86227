"""
Server-sent events connection.

Handles:
- Background reading of a text/event-stream response
- Named event dispatch ('open', 'message', 'error' and custom event names)
- Reconnection with exponential backoff and Last-Event-ID
- Deterministic close (no callbacks once close() returns)
"""

import requests
from threading import Thread, Event, Lock, RLock, current_thread
from typing import Optional, Dict, Callable
from enum import Enum
import logging

from impcentral.streaming.sse import parse_events

logger = logging.getLogger(__name__)

# Statuses after which the server is expected to come back
RETRYABLE_STATUSES = (500, 502, 503, 504)


class ConnectionState(Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class EventConnection:
    """
    One-directional server push channel.

    Callbacks run on the connection's reader thread, one at a time and in
    the order the server sent the events:
    - on_open(): the response headers arrived (again after every reconnect)
    - on_message(data): unnamed or 'message' events
    - on_error(status): status is the HTTP status for rejected (re)connects,
      None for dropped reads and failed connection attempts
    - on_close(): the connection gave up for good (not called for close())
    - handlers registered with on(name, handler) for named events
    """

    def __init__(self, url: str,
                 on_open: Optional[Callable[[], None]] = None,
                 on_message: Optional[Callable[[str], None]] = None,
                 on_error: Optional[Callable[[Optional[int]], None]] = None,
                 on_close: Optional[Callable[[], None]] = None,
                 headers: Optional[Dict[str, str]] = None,
                 session: Optional[requests.Session] = None,
                 reconnect_delay: float = 1.0,
                 max_reconnect_delay: float = 30.0,
                 connect_timeout: float = 30.0):
        self.url = url
        self.headers = headers or {}
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self.connect_timeout = connect_timeout

        self._session = session or requests.Session()
        self._owns_session = session is None
        self._handlers: Dict[str, Callable] = {}
        self._on_open = on_open
        self._on_message = on_message
        self._on_error = on_error
        self._on_close = on_close

        self._thread: Optional[Thread] = None
        self._stop_event = Event()
        self._state = ConnectionState.CONNECTING
        self._state_lock = Lock()
        self._dispatch_lock = RLock()
        self._closed = False
        self._response: Optional[requests.Response] = None
        self._last_event_id: Optional[str] = None
        self._reconnect_attempts = 0

    def on(self, event_name: str, handler: Callable[[str], None]):
        """Register a handler for a named event (e.g. 'state_change')."""
        self._handlers[event_name] = handler

    @property
    def state(self) -> ConnectionState:
        with self._state_lock:
            return self._state

    @property
    def last_event_id(self) -> Optional[str]:
        return self._last_event_id

    def start(self):
        """Start the reader thread."""
        if self._thread and self._thread.is_alive():
            return
        if self._closed:
            raise RuntimeError("EventConnection cannot be restarted after close()")

        self._stop_event.clear()
        self._thread = Thread(target=self._read_loop, daemon=True,
                              name=f"EventConnection-{self.url}")
        self._thread.start()

    def close(self):
        """
        Close the connection for good.

        Waits for a running callback to finish; afterwards no callback is
        invoked. Safe to call from inside a callback and more than once.
        """
        with self._dispatch_lock:
            self._closed = True
        self._stop_event.set()
        self._set_state(ConnectionState.CLOSED)

        response = self._response
        if response is not None:
            try:
                response.close()
            except Exception as e:
                logger.debug(f"EventConnection {self.url}: Error closing response: {e}")

        if self._thread and self._thread is not current_thread():
            self._thread.join(timeout=2.0)
        self._thread = None

        if self._owns_session:
            self._session.close()

    def _read_loop(self):
        """Main connection loop."""
        while not self._stop_event.is_set():
            response = self._connect()
            if response is None:
                self._dispatch_error(None)
                self._wait_reconnect()
                continue

            if response.status_code != 200:
                status = response.status_code
                response.close()
                logger.warning(f"EventConnection {self.url}: HTTP/{status}")
                self._dispatch_error(status)
                if status in RETRYABLE_STATUSES:
                    self._wait_reconnect()
                    continue
                self._give_up()
                return

            self._reconnect_attempts = 0
            self._set_state(ConnectionState.OPEN)
            logger.info(f"EventConnection {self.url}: Connected")
            self._dispatch(self._on_open)

            try:
                self._read_events(response)
            except Exception as e:
                # Closing the response from another thread interrupts the read
                if self._stop_event.is_set():
                    break
                logger.warning(f"EventConnection {self.url}: Read error: {e}")
            finally:
                self._response = None
                response.close()

            if self._stop_event.is_set():
                break

            self._set_state(ConnectionState.CONNECTING)
            self._dispatch_error(None)
            self._wait_reconnect()

    def _connect(self) -> Optional[requests.Response]:
        """Open the HTTP response, or None when the server is unreachable."""
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        headers.update(self.headers)
        if self._last_event_id:
            headers["Last-Event-ID"] = self._last_event_id

        try:
            self._set_state(ConnectionState.CONNECTING)
            response = self._session.get(
                self.url,
                headers=headers,
                stream=True,
                timeout=(self.connect_timeout, None)
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"EventConnection {self.url}: Connect error: {e}")
            return None

        if response.encoding is None:
            response.encoding = "utf-8"
        self._response = response
        if self._stop_event.is_set():
            response.close()
            return None
        return response

    def _read_events(self, response: requests.Response):
        lines = response.iter_lines(chunk_size=None, decode_unicode=True)
        for event in parse_events(lines):
            if self._stop_event.is_set():
                return
            if event.id is not None:
                self._last_event_id = event.id
            if event.retry is not None:
                self.reconnect_delay = event.retry / 1000.0

            if event.event == "message":
                self._dispatch(self._on_message, event.data)
            else:
                self._dispatch(self._handlers.get(event.event), event.data)

    def _dispatch(self, handler: Optional[Callable], *args):
        if handler is None:
            return
        with self._dispatch_lock:
            if self._closed:
                return
            try:
                handler(*args)
            except Exception:
                logger.exception(f"EventConnection {self.url}: Handler failed")

    def _dispatch_error(self, status: Optional[int]):
        self._dispatch(self._on_error, status)

    def _give_up(self):
        self._set_state(ConnectionState.CLOSED)
        logger.error(f"EventConnection {self.url}: Closed by server")
        self._dispatch(self._on_close)

    def _wait_reconnect(self):
        """Wait before reconnecting, with exponential backoff."""
        if self._stop_event.is_set():
            return

        self._reconnect_attempts += 1
        delay = min(self.reconnect_delay * (2 ** (self._reconnect_attempts - 1)),
                    self.max_reconnect_delay)
        logger.info(f"EventConnection {self.url}: Reconnect in {delay:.1f}s "
                    f"(attempt {self._reconnect_attempts})")
        self._stop_event.wait(delay)

    def _set_state(self, state: ConnectionState):
        with self._state_lock:
            # CLOSED is terminal
            if self._state != ConnectionState.CLOSED:
                self._state = state
