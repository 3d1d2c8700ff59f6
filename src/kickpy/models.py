"""Data models for kickpy.

Defines Pydantic models for token material, authorization attempts and
chat events. Credentials and events are immutable; a refresh produces a
new Credential that replaces the stored one.
"""

import base64
import hashlib
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def generate_code_challenge(verifier: str) -> str:
    """Derive the S256 challenge: base64url(SHA-256(verifier)) without padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


class SessionPhase(Enum):
    """Lifecycle phases of a chat session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    ACTIVE = "active"


class TokenResponse(BaseModel):
    """Body returned by the platform token endpoint."""

    access_token: str = Field(description="Bearer token for API and chat calls")
    refresh_token: str | None = Field(
        default=None, description="Token used for the refresh grant"
    )
    expires_in: int = Field(description="Lifetime of the access token in seconds")


class Credential(BaseModel):
    """Token material for one channel."""

    model_config = ConfigDict(frozen=True)

    channel: str = Field(description="Channel identity (the authorizing username)")
    access_token: str = Field(description="Current access token")
    refresh_token: str = Field(description="Current refresh token")
    expires_at: float = Field(description="Unix timestamp when the access token expires")

    @classmethod
    def from_token_response(
        cls, channel: str, token: TokenResponse, issued_at: float
    ) -> "Credential":
        """Build a credential from a token response issued at ``issued_at``."""
        return cls(
            channel=channel,
            access_token=token.access_token,
            refresh_token=token.refresh_token or "",
            expires_at=issued_at + token.expires_in,
        )

    def refreshed(self, token: TokenResponse, issued_at: float) -> "Credential":
        """Return a copy carrying the tokens from a refresh grant.

        The platform may omit a new refresh token, in which case the
        current one stays valid and is kept.
        """
        return self.model_copy(
            update={
                "access_token": token.access_token,
                "refresh_token": token.refresh_token or self.refresh_token,
                "expires_at": issued_at + token.expires_in,
            }
        )

    def expires_within(self, margin: float, now: float) -> bool:
        """Check if the access token expires within ``margin`` seconds of ``now``."""
        return now > self.expires_at - margin


class AuthorizationAttempt(BaseModel):
    """A pending PKCE authorization, alive between redirect and callback."""

    model_config = ConfigDict(frozen=True)

    state: str = Field(description="Opaque CSRF token echoed back on callback")
    code_verifier: str = Field(description="PKCE secret sent with the code exchange")
    issued_at: float = Field(default=0.0, description="Unix timestamp of the redirect")

    @property
    def code_challenge(self) -> str:
        """S256 challenge derived from the verifier."""
        return generate_code_challenge(self.code_verifier)

    def expired(self, ttl: float, now: float) -> bool:
        return now - self.issued_at > ttl


class ChatMessage(BaseModel):
    """A chat message with its body already lowercased."""

    sender: str = Field(description="Username of the sender")
    body: str = Field(description="Lowercased message content")
    timestamp: datetime = Field(
        default_factory=datetime.now, description="When the message was received"
    )


class OtherEvent(BaseModel):
    """Any inbound frame that is not a chat message."""

    event: str = Field(description="Event name from the frame")
    data: Any = Field(default=None, description="Raw event payload")
    timestamp: datetime = Field(
        default_factory=datetime.now, description="When the frame was received"
    )


class ConnectedEvent(BaseModel):
    """The session authenticated and became active."""

    channel: str = Field(description="Channel the session is bound to")
    chatroom_id: int = Field(description="Resolved chatroom identifier")
    timestamp: datetime = Field(
        default_factory=datetime.now, description="When the session became active"
    )


class DisconnectEvent(BaseModel):
    """A disconnection event."""

    reason: str = Field(description="Reason for disconnection")
    timestamp: datetime = Field(
        default_factory=datetime.now, description="When the disconnection occurred"
    )


class ReconnectingEvent(BaseModel):
    """A scheduled connection attempt."""

    delay: float = Field(description="Delay before the attempt in seconds")
    reason: str = Field(description="Why the attempt was scheduled")
    timestamp: datetime = Field(
        default_factory=datetime.now, description="When the attempt was scheduled"
    )


# Type alias for inbound chat frames
InboundEvent = ChatMessage | OtherEvent

# Type alias for all event types
EventType = (
    ChatMessage | OtherEvent | ConnectedEvent | DisconnectEvent | ReconnectingEvent
)
