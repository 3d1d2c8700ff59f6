"""Chat command replies.

Maps a lowercased chat message to at most one reply. Rules are checked in
order and the first match wins:

- body contains ``halo``: greet the sender
- body is ``!waktu``: report the current local time
- body is ``!help``: list the commands
"""

from collections.abc import Callable
from datetime import datetime

HELP_TEXT = "Perintah: halo, !waktu, !help"


class CommandResponder:
    """Pure mapping from (sender, body) to an optional reply."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock

    def respond(self, sender: str, body: str) -> str | None:
        """Return the reply for a message, or None when no rule matches."""
        if "halo" in body:
            return f"Halo @{sender}! 👋 Bot aktif."
        if body == "!waktu":
            return f"🕒 Sekarang: {self._clock().strftime('%d/%m/%Y, %H.%M.%S')}"
        if body == "!help":
            return HELP_TEXT
        return None

    def __call__(self, sender: str, body: str) -> str | None:
        return self.respond(sender, body)
