"""
Tests for kickpy protocol handling.
"""

import json
import logging

import pytest
from kickpy.exceptions import MalformedFrameError, ProtocolError
from kickpy.models import ChatMessage, OtherEvent
from kickpy.protocol import ProtocolHandler


class TestProtocolHandler:
    """Test ProtocolHandler functionality."""

    def setup_method(self):
        """Set up test fixtures."""
        self.handler = ProtocolHandler()

    def test_parse_message_frame(self):
        """Test parsing a chat message frame."""
        raw = json.dumps(
            {
                "event": "message",
                "data": {
                    "sender": {"username": "Alice"},
                    "message": {"content": "Halo Semua"},
                },
            }
        )

        event = self.handler.parse_frame(raw)

        assert isinstance(event, ChatMessage)
        assert event.sender == "Alice"
        assert event.body == "halo semua"

    def test_parse_other_event(self):
        """Test frames with other event names become OtherEvent."""
        event = self.handler.parse_frame(
            json.dumps({"event": "user_joined", "data": {"username": "bob"}})
        )

        assert isinstance(event, OtherEvent)
        assert event.event == "user_joined"
        assert event.data == {"username": "bob"}

    def test_parse_other_event_without_data(self):
        """Test frames without data are still accepted."""
        event = self.handler.parse_frame('{"event": "pong"}')

        assert isinstance(event, OtherEvent)
        assert event.data is None

    def test_other_event_logged_at_debug(self, caplog):
        """Test unhandled event names are logged for troubleshooting."""
        with caplog.at_level(logging.DEBUG, logger="kickpy.protocol"):
            self.handler.parse_frame('{"event": "pinned_message"}')

        assert "pinned_message" in caplog.text

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "",
            "[]",
            '"just a string"',
            '{"data": {}}',
            '{"event": 5}',
            '{"event": "message"}',
            '{"event": "message", "data": {"sender": {"username": "a"}}}',
            '{"event": "message", "data": {"message": {"content": "x"}}}',
            '{"event": "message", "data": {"sender": {"username": 1}, "message": {"content": "x"}}}',
            '{"event": "message", "data": "flat string"}',
        ],
    )
    def test_malformed_frames(self, raw):
        """Test malformed frames raise MalformedFrameError."""
        with pytest.raises(MalformedFrameError) as exc_info:
            self.handler.parse_frame(raw)

        assert isinstance(exc_info.value, ProtocolError)
        assert exc_info.value.details == raw

    def test_format_auth(self):
        """Test auth frame formatting."""
        frame = json.loads(self.handler.format_auth("secret-token"))

        assert frame == {"event": "auth", "data": {"token": "secret-token"}}

    def test_format_send_message(self):
        """Test outgoing message formatting."""
        frame = json.loads(self.handler.format_send_message("Halo @bob! 👋"))

        assert frame == {"event": "send_message", "data": {"content": "Halo @bob! 👋"}}

    def test_format_empty_message(self):
        """Test formatting empty message raises error."""
        with pytest.raises(ValueError, match="Message content cannot be empty"):
            self.handler.format_send_message("")
