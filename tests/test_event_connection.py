"""Tests for impcentral.streaming.event_connection."""

import threading
from unittest.mock import MagicMock

import pytest
import requests

from impcentral.streaming.event_connection import ConnectionState, EventConnection

URL = "https://api.test/v5/logstream/ls-1?format=text"


def make_response(status_code=200, lines=()):
    response = MagicMock()
    response.status_code = status_code
    response.encoding = "utf-8"
    response.iter_lines.return_value = iter(lines)
    return response


class EventLog:
    """Collects callbacks in arrival order; done is set on on_close."""

    def __init__(self):
        self.events = []
        self.done = threading.Event()

    def handlers(self):
        return dict(
            on_open=lambda: self.events.append("open"),
            on_message=lambda data: self.events.append(("message", data)),
            on_error=lambda status: self.events.append(("error", status)),
            on_close=self._closed,
        )

    def _closed(self):
        self.events.append("close")
        self.done.set()


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def event_log():
    return EventLog()


def make_connection(session, event_log, **kwargs):
    connection = EventConnection(URL, session=session, reconnect_delay=0.01,
                                 **event_log.handlers(), **kwargs)
    connection.on("state_change", lambda data: event_log.events.append(("state_change", data)))
    return connection


class TestEventConnection:

    def test_dispatches_in_order_then_gives_up(self, session, event_log):
        session.get.side_effect = [
            make_response(200, [
                "event: state_change", "data: opened", "",
                "id: 7", "data: hello", "",
                "data: world", "",
            ]),
            make_response(404),
        ]
        connection = make_connection(session, event_log)

        connection.start()
        assert event_log.done.wait(2.0)

        assert event_log.events == [
            "open",
            ("state_change", "opened"),
            ("message", "hello"),
            ("message", "world"),
            ("error", None),
            ("error", 404),
            "close",
        ]
        assert connection.state == ConnectionState.CLOSED
        assert connection.last_event_id == "7"
        connection.close()

    def test_request_headers(self, session, event_log):
        session.get.side_effect = [
            make_response(200, ["id: 42", "data: x", ""]),
            make_response(403),
        ]
        connection = make_connection(session, event_log, headers={"X-Extra": "1"})

        connection.start()
        assert event_log.done.wait(2.0)

        first_call, second_call = session.get.call_args_list
        assert first_call.args == (URL,)
        assert first_call.kwargs["stream"] is True
        assert first_call.kwargs["headers"]["Accept"] == "text/event-stream"
        assert first_call.kwargs["headers"]["X-Extra"] == "1"
        assert "Last-Event-ID" not in first_call.kwargs["headers"]
        assert second_call.kwargs["headers"]["Last-Event-ID"] == "42"
        connection.close()

    def test_retryable_status_reconnects(self, session, event_log):
        session.get.side_effect = [
            make_response(503),
            make_response(200, ["data: back", ""]),
            make_response(401),
        ]
        connection = make_connection(session, event_log)

        connection.start()
        assert event_log.done.wait(2.0)

        assert event_log.events == [
            ("error", 503),
            "open",
            ("message", "back"),
            ("error", None),
            ("error", 401),
            "close",
        ]
        connection.close()

    def test_connect_failure_reconnects(self, session, event_log):
        session.get.side_effect = [
            requests.exceptions.ConnectionError("refused"),
            make_response(404),
        ]
        connection = make_connection(session, event_log)

        connection.start()
        assert event_log.done.wait(2.0)

        assert event_log.events == [("error", None), ("error", 404), "close"]
        connection.close()

    def test_handler_exception_does_not_stop_reading(self, session, event_log):
        received = []

        def flaky(data):
            received.append(data)
            if data == "boom":
                raise RuntimeError("handler bug")

        session.get.side_effect = [
            make_response(200, ["data: boom", "", "data: fine", ""]),
            make_response(404),
        ]
        connection = EventConnection(URL, on_message=flaky, on_close=event_log.done.set,
                                     session=session, reconnect_delay=0.01)

        connection.start()
        assert event_log.done.wait(2.0)

        assert received == ["boom", "fine"]
        connection.close()

    def test_no_callbacks_after_close(self, session):
        released = threading.Event()
        first_received = threading.Event()
        messages = []

        def lines():
            yield "data: first"
            yield ""
            released.wait(2.0)
            yield "data: second"
            yield ""

        response = make_response(200)
        response.iter_lines.return_value = lines()
        # Closing the response unblocks the pending read
        response.close.side_effect = released.set
        session.get.return_value = response

        def on_message(data):
            messages.append(data)
            first_received.set()

        connection = EventConnection(URL, on_message=on_message, session=session)
        connection.start()
        assert first_received.wait(2.0)

        connection.close()

        assert messages == ["first"]
        assert connection.state == ConnectionState.CLOSED

    def test_close_from_inside_callback(self, session):
        closed = threading.Event()
        session.get.return_value = make_response(200, ["data: bye", "", "data: never", ""])
        connection = None
        messages = []

        def on_message(data):
            messages.append(data)
            connection.close()
            closed.set()

        connection = EventConnection(URL, on_message=on_message, session=session)
        connection.start()

        assert closed.wait(2.0)
        assert messages == ["bye"]
        assert connection.state == ConnectionState.CLOSED

    def test_cannot_restart_after_close(self, session):
        connection = EventConnection(URL, session=session)
        connection.close()

        with pytest.raises(RuntimeError):
            connection.start()

    def test_server_retry_sets_reconnect_delay(self, session, event_log):
        session.get.side_effect = [
            make_response(200, ["retry: 20", "data: x", ""]),
            make_response(404),
        ]
        connection = make_connection(session, event_log)

        connection.start()
        assert event_log.done.wait(2.0)

        assert connection.reconnect_delay == pytest.approx(0.02)
        connection.close()
