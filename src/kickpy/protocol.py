"""Protocol handling for kickpy.

Handles parsing of incoming websocket frames and formatting of outgoing
frames according to the Kick chat protocol. Every frame is a JSON object
of the form ``{"event": <name>, "data": <payload>}``.
"""

import json
import logging
from typing import Any

from .exceptions import MalformedFrameError
from .models import ChatMessage, InboundEvent, OtherEvent

logger = logging.getLogger(__name__)


class ProtocolHandler:
    """Handles chat protocol parsing and formatting."""

    MESSAGE_EVENT = "message"
    AUTH_EVENT = "auth"
    SEND_MESSAGE_EVENT = "send_message"

    def parse_frame(self, raw_frame: str) -> InboundEvent:
        """Parse a raw websocket frame into an event object.

        Raises:
            MalformedFrameError: If the frame is not a JSON object with an
                event name, or a message frame lacks sender or content.
        """
        try:
            data = json.loads(raw_frame)
        except json.JSONDecodeError as e:
            raise MalformedFrameError(f"Invalid JSON: {e}", raw_frame) from e

        if not isinstance(data, dict):
            raise MalformedFrameError("Frame is not a JSON object", raw_frame)

        event = data.get("event")
        if not isinstance(event, str):
            raise MalformedFrameError("Frame missing event field", raw_frame)

        if event == self.MESSAGE_EVENT:
            return self._parse_message(data.get("data"), raw_frame)

        logger.debug(f"Unhandled chat event: {event}")
        return OtherEvent(event=event, data=data.get("data"))

    def _parse_message(self, payload: Any, raw_frame: str) -> ChatMessage:
        """Extract sender and lowercased body from a message payload."""
        try:
            sender = payload["sender"]["username"]
            content = payload["message"]["content"]
        except (KeyError, TypeError) as e:
            raise MalformedFrameError(
                f"Message frame missing field: {e}", raw_frame
            ) from e

        if not isinstance(sender, str) or not isinstance(content, str):
            raise MalformedFrameError("Message sender and content must be strings", raw_frame)

        return ChatMessage(sender=sender, body=content.lower())

    def format_auth(self, token: str) -> str:
        """Format the auth frame sent right after the socket opens."""
        return json.dumps({"event": self.AUTH_EVENT, "data": {"token": token}})

    def format_send_message(self, content: str) -> str:
        """Format an outgoing chat message."""
        if not content.strip():
            raise ValueError("Message content cannot be empty")
        return json.dumps(
            {"event": self.SEND_MESSAGE_EVENT, "data": {"content": content}}
        )
