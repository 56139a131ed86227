"""Tests for the server-sent events parser."""

from impcentral.streaming.sse import ServerSentEvent, parse_events


class TestParseEvents:

    def test_unnamed_event_is_message(self):
        events = list(parse_events(["data: hello", ""]))

        assert events == [ServerSentEvent(data="hello")]

    def test_named_event(self):
        events = list(parse_events(["event: state_change", "data: opened", ""]))

        assert events[0].event == "state_change"
        assert events[0].data == "opened"

    def test_multiline_data(self):
        events = list(parse_events(["data: first", "data: second", ""]))

        assert events[0].data == "first\nsecond"

    def test_only_one_leading_space_is_stripped(self):
        events = list(parse_events(["data:  indented", "data:tight", ""]))

        assert events[0].data == " indented\ntight"

    def test_comments_and_unknown_fields_ignored(self):
        events = list(parse_events([": keep-alive", "foo: bar", "data: x", ""]))

        assert events == [ServerSentEvent(data="x")]

    def test_block_without_data_is_not_dispatched(self):
        events = list(parse_events(["event: state_change", "", "data: x", ""]))

        assert events == [ServerSentEvent(data="x")]

    def test_id_persists_across_events(self):
        events = list(parse_events(["id: 7", "data: a", "", "data: b", ""]))

        assert [e.id for e in events] == ["7", "7"]

    def test_retry(self):
        events = list(parse_events(["retry: 2500", "data: a", "", "retry: soon", "data: b", ""]))

        assert events[0].retry == 2500
        assert events[1].retry is None

    def test_incomplete_trailing_event_is_dropped(self):
        events = list(parse_events(["data: a", "", "data: partial"]))

        assert [e.data for e in events] == ["a"]

    def test_bytes_lines(self):
        events = list(parse_events([b"data: caf\xc3\xa9", b""]))

        assert events[0].data == "café"

    def test_empty_data_field(self):
        events = list(parse_events(["data", ""]))

        assert events == [ServerSentEvent(data="")]
