"""Shared fixtures for impcentral tests."""

from typing import Callable, List, Optional
from unittest.mock import MagicMock

import pytest

from impcentral.api.resource_client import ResourceClient
from impcentral.core.log_streams import LogStreams
from impcentral.core.stream_registry import StreamRegistry

API_ENDPOINT = "https://api.test/v5"


class FakeConnection:
    """Event connection driven by the test through emit()."""

    def __init__(self, url: str, start_action: Optional[Callable] = None,
                 swallow_errors: bool = False, **handlers):
        self.url = url
        self.swallow_errors = swallow_errors
        self.handlers = {
            "open": handlers.get("on_open"),
            "message": handlers.get("on_message"),
            "error": handlers.get("on_error"),
            "close": handlers.get("on_close"),
        }
        self.start_action = start_action
        self.started = False
        self.closed = False
        self.emitted: List[str] = []
        self.handler_errors: List[Exception] = []

    def on(self, event_name, handler):
        self.handlers[event_name] = handler

    def start(self):
        self.started = True
        if self.start_action:
            self.start_action(self)

    def close(self):
        self.closed = True

    def emit(self, event_name, *args):
        """Deliver an event the way the transport would, even after close()."""
        self.emitted.append(event_name)
        handler = self.handlers.get(event_name)
        if not handler:
            return
        if not self.swallow_errors:
            handler(*args)
            return
        # Like EventConnection, a failing handler must not stop the reader
        try:
            handler(*args)
        except Exception as e:
            self.handler_errors.append(e)


class FakeConnectionFactory:
    """Records every connection; by default they open as soon as started."""

    def __init__(self):
        self.connections: List[FakeConnection] = []
        self.start_action: Optional[Callable] = lambda connection: connection.emit("open")
        self.swallow_errors = False

    def __call__(self, url, **handlers) -> FakeConnection:
        connection = FakeConnection(url, start_action=self.start_action,
                                    swallow_errors=self.swallow_errors, **handlers)
        self.connections.append(connection)
        return connection

    @property
    def last(self) -> FakeConnection:
        return self.connections[-1]


class Recorder:
    """Callable that records its calls."""

    def __init__(self):
        self.calls = []

    def __call__(self, *args):
        self.calls.append(args[0] if len(args) == 1 else args)


@pytest.fixture
def resource_client() -> MagicMock:
    """Resource client mock; POST /logstream creates 'ls-1'."""
    client = MagicMock(spec=ResourceClient)
    client.api_endpoint = API_ENDPOINT
    client.url_for.side_effect = lambda path: f"{API_ENDPOINT}{path}"
    client.post.return_value = {"data": {"id": "ls-1", "type": "logstream"}}
    client.put.return_value = {}
    client.delete.return_value = {}
    return client


@pytest.fixture
def connection_factory() -> FakeConnectionFactory:
    return FakeConnectionFactory()


@pytest.fixture
def registry() -> StreamRegistry:
    return StreamRegistry()


@pytest.fixture
def log_streams(resource_client, registry, connection_factory) -> LogStreams:
    return LogStreams(resource_client, registry=registry,
                      connection_factory=connection_factory)


@pytest.fixture
def recorder() -> Callable[[], Recorder]:
    """Factory for fresh recorders."""
    return Recorder
