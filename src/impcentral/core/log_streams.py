"""
LogStreams: live device logs from impCentral.

To receive logs from devices, create() a LogStream, take the id from the
response and attach one or more devices with add_device(). A LogStream id
is only good for adding/removing devices and closing the stream; the logs of
one stream cannot be read by several clients. Create a new LogStream every
time the application restarts.

An account has at most one LogStream open at a time. Creating a new one
invalidates the previous stream on the server; the client does not close it
locally, the old stream simply starts reporting connection errors to its
error handler.
"""

import json
import functools
from threading import Event, Lock
from typing import Any, Callable, Dict, List, Optional, Union
import logging

from impcentral.api.resource_client import ResourceClient
from impcentral.core.stream_registry import StreamRegistry
from impcentral.errors import (
    ImpCentralApiError, ImpCentralError, InvalidDataError, InvalidStateError
)
from impcentral.models.log_stream import (
    LogStream, LogStreamCallbacks, LogStreamFormat, StreamState
)
from impcentral.streaming.event_connection import EventConnection
from impcentral.utils.params_checker import (
    validate_callable, validate_enum, validate_non_empty
)

logger = logging.getLogger(__name__)


class _PendingOpen:
    """Outcome of the wait for a new stream's connection to open."""

    def __init__(self):
        self._event = Event()
        self.error: Optional[ImpCentralError] = None

    def succeed(self):
        self._event.set()

    def fail(self, error: ImpCentralError):
        self.error = error
        self._event.set()

    def wait(self, timeout: Optional[float]) -> bool:
        return self._event.wait(timeout)


class LogStreams:
    """
    Access to the LogStreams impCentral API methods.

    Every stream's callbacks run on that stream's connection thread, in the
    order the server sent the events.
    """

    FORMAT_TEXT = LogStreamFormat.TEXT.value
    FORMAT_JSON = LogStreamFormat.JSON.value

    def __init__(self, resource_client: ResourceClient,
                 registry: Optional[StreamRegistry] = None,
                 connection_factory: Optional[Callable[..., EventConnection]] = None,
                 open_timeout: Optional[float] = None,
                 reconnect_delay: float = 1.0,
                 max_reconnect_delay: float = 30.0):
        """
        Args:
            resource_client: Client used for the LogStream API requests
            registry: Registry of open streams, a fresh one by default
            connection_factory: Builds the push connection from the stream
                URL and its on_open/on_message/on_error/on_close handlers
            open_timeout: Default limit in seconds for create() to wait for
                the connection to open, None to wait indefinitely
            reconnect_delay: Initial delay between reconnect attempts
            max_reconnect_delay: Upper bound of the reconnect backoff
        """
        self._resource_client = resource_client
        self._registry = registry if registry is not None else StreamRegistry()
        self._connection_factory = connection_factory or functools.partial(
            EventConnection,
            reconnect_delay=reconnect_delay,
            max_reconnect_delay=max_reconnect_delay
        )
        self.open_timeout = open_timeout
        self._lock = Lock()

    def create(self, message_handler: Callable[[str], None],
               state_change_handler: Optional[Callable[[str], None]] = None,
               error_handler: Optional[Callable[[ImpCentralError], None]] = None,
               format: Union[str, LogStreamFormat] = FORMAT_TEXT,
               open_timeout: Optional[float] = None) -> Dict[str, Any]:
        """
        Create a new LogStream and start receiving logs from it.

        Blocks until the server created the stream and its push connection
        is open.

        Args:
            message_handler: Called with every log message
            state_change_handler: Called with the raw 'state_change' payload
                when the stream opens or closes or a device is added/removed
            error_handler: Called with ImpCentralApiError for connection
                errors reported with an HTTP status, and with
                InvalidDataError for json messages that fail to decode.
                Without it, undecodable messages are dropped.
            format: LogStreams.FORMAT_TEXT (default) or LogStreams.FORMAT_JSON
            open_timeout: Seconds to wait for the connection to open,
                defaults to the instance setting

        Returns:
            The 'Request a new logstream' response body; the new stream id
            is at ["data"]["id"]

        Raises:
            InvalidDataError: Invalid arguments (nothing is sent)
            ImpCentralApiError: The server refused to create the stream, the
                connection failed before opening, or open_timeout expired
            InvalidStateError: The server issued the id of a LogStream that
                is already open in this instance
        """
        validate_callable(message_handler, "message_handler")
        validate_callable(state_change_handler, "state_change_handler", required=False)
        validate_callable(error_handler, "error_handler", required=False)
        validate_enum(format, [f.value for f in LogStreamFormat], "format")

        result = self._resource_client.post(self._get_path())
        stream_id = self._get_stream_id(result)

        stream = LogStream(
            id=stream_id,
            format=LogStreamFormat(format),
            callbacks=LogStreamCallbacks(
                on_message=message_handler,
                on_state_change=state_change_handler,
                on_error=error_handler
            )
        )
        pending = _PendingOpen()

        url = f"{self._resource_client.url_for(self._get_path(stream_id))}?format={stream.format.value}"
        connection = self._connection_factory(
            url,
            on_open=functools.partial(self._handle_open, stream, pending),
            on_message=functools.partial(self._handle_message, stream),
            on_error=functools.partial(self._handle_error, stream, pending),
            on_close=functools.partial(self._handle_close, stream, pending)
        )
        connection.on("state_change", functools.partial(self._handle_state_change, stream))
        stream.connection = connection

        logger.info(f"LogStreams: Opening {stream_id} ({stream.format.value})")
        connection.start()

        timeout = open_timeout if open_timeout is not None else self.open_timeout
        if not pending.wait(timeout):
            with self._lock:
                # A late open must not register a stream nobody waits for
                abandoned = stream.state == StreamState.PENDING
                if abandoned:
                    stream.state = StreamState.CLOSED
            if abandoned:
                connection.close()
                raise ImpCentralApiError(
                    f"LogStream {stream_id} was not opened within {timeout}s")

        if pending.error is not None:
            connection.close()
            raise pending.error

        return result

    def add_device(self, log_stream_id: str, device_id: str):
        """
        Add the logs of a device to a LogStream.

        A LogStream carries five devices at a time. Adding more makes the
        server remove the least recently added device, which is reported
        only as a 'state_change' event on the stream.

        Args:
            log_stream_id: The LogStream's id
            device_id: MAC address, agent id or device id of the device

        Raises:
            InvalidDataError: Empty id
            ImpCentralApiError: The server rejected the request
        """
        validate_non_empty(log_stream_id, "log_stream_id")
        validate_non_empty(device_id, "device_id")
        self._resource_client.put(self._get_path(log_stream_id, device_id))

    def remove_device(self, log_stream_id: str, device_id: str):
        """
        Remove the logs of a device from a LogStream.

        Args:
            log_stream_id: The LogStream's id
            device_id: MAC address, agent id or device id of the device

        Raises:
            InvalidDataError: Empty id
            ImpCentralApiError: The server rejected the request
        """
        validate_non_empty(log_stream_id, "log_stream_id")
        validate_non_empty(device_id, "device_id")
        self._resource_client.delete(self._get_path(log_stream_id, device_id))

    def close(self, log_stream_id: str):
        """
        Close a LogStream opened by this instance.

        No handler of the stream is called after this returns.

        Raises:
            InvalidDataError: The id is empty or not an open LogStream
        """
        validate_non_empty(log_stream_id, "log_stream_id")

        stream = self._registry.unregister(log_stream_id)
        if stream is None:
            raise InvalidDataError(f'Incorrect LogStream id: "{log_stream_id}"')

        with self._lock:
            stream.state = StreamState.CLOSED
        stream.connection.close()
        logger.info(f"LogStreams: Closed {log_stream_id}")

    def close_all(self):
        """Close every open LogStream."""
        for log_stream_id in self._registry.ids():
            try:
                self.close(log_stream_id)
            except InvalidDataError:
                # Closed concurrently
                logger.debug(f"LogStreams: {log_stream_id} already closed")

    def is_open(self, log_stream_id: str) -> bool:
        """Check if a LogStream is open in this instance."""
        return log_stream_id in self._registry

    @property
    def open_stream_ids(self) -> List[str]:
        return self._registry.ids()

    # === Connection events ===

    def _handle_open(self, stream: LogStream, pending: _PendingOpen):
        with self._lock:
            # Reconnects report open again
            if stream.state != StreamState.PENDING:
                return
            try:
                self._registry.register(stream.id, stream)
            except InvalidStateError as e:
                stream.state = StreamState.CLOSED
                pending.fail(e)
                return
            stream.state = StreamState.OPEN
        logger.info(f"LogStreams: {stream.id} opened")
        pending.succeed()

    def _handle_message(self, stream: LogStream, data: str):
        if stream.state == StreamState.CLOSED:
            return

        if stream.format == LogStreamFormat.JSON:
            try:
                data = json.dumps(json.loads(data), ensure_ascii=False)
            except ValueError as e:
                error = InvalidDataError(f"LogStream {stream.id}: Malformed json message: {e}")
                if stream.callbacks.on_error:
                    stream.callbacks.on_error(error)
                else:
                    logger.debug(f"{error}; no error handler, message dropped")
                return

        stream.callbacks.on_message(data)

    def _handle_state_change(self, stream: LogStream, state: str):
        if stream.state == StreamState.CLOSED:
            return
        if stream.callbacks.on_state_change:
            stream.callbacks.on_state_change(state)

    def _handle_error(self, stream: LogStream, pending: _PendingOpen,
                      status: Optional[int]):
        if status is None:
            # Dropped connection; EventConnection reconnects by itself
            logger.debug(f"LogStreams: {stream.id} connection interrupted")
            return

        with self._lock:
            if stream.state == StreamState.CLOSED:
                return
            error = ImpCentralApiError(
                f"LogStream {stream.id} connection error HTTP/{status}", status)
            # An expiring open_timeout must find the error already set
            if stream.state == StreamState.PENDING:
                stream.state = StreamState.CLOSED
                pending.fail(error)

        if stream.callbacks.on_error:
            stream.callbacks.on_error(error)

    def _handle_close(self, stream: LogStream, pending: _PendingOpen):
        with self._lock:
            previous = stream.state
            stream.state = StreamState.CLOSED
            if previous == StreamState.PENDING:
                pending.fail(ImpCentralApiError(
                    f"LogStream {stream.id} closed before it was opened"))

        if previous == StreamState.OPEN:
            self._registry.unregister(stream.id)
            logger.warning(f"LogStreams: {stream.id} closed by the server")
        # Releases the connection's session; safe on the reader thread
        stream.connection.close()

    # === Helpers ===

    @staticmethod
    def _get_stream_id(result: Any) -> str:
        try:
            stream_id = result["data"]["id"]
        except (KeyError, TypeError):
            stream_id = None
        if not stream_id:
            raise ImpCentralApiError("LogStream creation response has no id", body=result)
        return stream_id

    @staticmethod
    def _get_path(log_stream_id: Optional[str] = None,
                  device_id: Optional[str] = None) -> str:
        if log_stream_id is None:
            return "/logstream"
        if device_id is None:
            return f"/logstream/{log_stream_id}"
        return f"/logstream/{log_stream_id}/{device_id}"
