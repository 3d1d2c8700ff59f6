"""kickpy: Python chat bot session manager for Kick.

Authorizes against Kick's OAuth2/PKCE flow, keeps the resulting tokens
fresh, and holds a WebSocket connection to one channel's chatroom that
answers simple chat commands.

Features:
- PKCE authorization with single-use attempts
- Durable per-channel credentials with expiry-driven refresh
- Chat session state machine with automatic reconnection
- Type-safe models with Pydantic

Example:
    >>> import asyncio
    >>> from kickpy import BotConfig, SessionCoordinator
    >>>
    >>> async def main():
    ...     coordinator = SessionCoordinator(BotConfig.from_env())
    ...     async with coordinator:
    ...         print(coordinator.begin_authorization("browser-session"))
    ...         await asyncio.sleep(3600)
    >>>
    >>> asyncio.run(main())
"""

from .api import KickAPI
from .config import BotConfig, KickEnvironment
from .coordinator import SessionCoordinator
from .exceptions import (
    AuthorizationError,
    ChannelLookupFailedError,
    ConfigurationError,
    ExchangeFailedError,
    KickError,
    MalformedFrameError,
    NoAttemptError,
    NotConnectedError,
    ProtocolError,
    RefreshFailedError,
    StateMismatchError,
    TransportError,
)
from .models import (
    AuthorizationAttempt,
    ChatMessage,
    ConnectedEvent,
    Credential,
    DisconnectEvent,
    EventType,
    OtherEvent,
    ReconnectingEvent,
    SessionPhase,
    TokenResponse,
)
from .oauth import PKCEAuthorizer
from .refresher import TokenRefresher
from .responder import CommandResponder
from .session import ChatSession
from .store import CredentialStore

__version__ = "0.1.0"

__all__ = [
    # Coordination
    "SessionCoordinator",
    "ChatSession",
    "PKCEAuthorizer",
    "TokenRefresher",
    "CredentialStore",
    "CommandResponder",
    "KickAPI",
    # Configuration
    "BotConfig",
    "KickEnvironment",
    # Models
    "AuthorizationAttempt",
    "ChatMessage",
    "ConnectedEvent",
    "Credential",
    "DisconnectEvent",
    "EventType",
    "OtherEvent",
    "ReconnectingEvent",
    "SessionPhase",
    "TokenResponse",
    # Exceptions
    "KickError",
    "AuthorizationError",
    "ChannelLookupFailedError",
    "ConfigurationError",
    "ExchangeFailedError",
    "MalformedFrameError",
    "NoAttemptError",
    "NotConnectedError",
    "ProtocolError",
    "RefreshFailedError",
    "StateMismatchError",
    "TransportError",
]
