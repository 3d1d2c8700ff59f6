"""Exception classes for kickpy.

Provides structured error handling for the failure modes of the
authorization flow, the token lifecycle and the chat connection.
"""


class KickError(Exception):
    """Base exception for all kickpy errors."""

    def __init__(self, message: str, details: str | None = None) -> None:
        """Initialize KickError with message and optional details.

        Args:
            message: Error message.
            details: Optional additional error details.
        """
        self.message = message
        self.details = details
        super().__init__(self.message)


class ConfigurationError(KickError):
    """Raised when required configuration is missing or invalid."""

    pass


class AuthorizationError(KickError):
    """Base class for errors that end an authorization attempt."""

    pass


class NoAttemptError(AuthorizationError):
    """Raised when a callback arrives with no pending authorization attempt."""

    pass


class StateMismatchError(AuthorizationError):
    """Raised when the callback state does not match the issued one."""

    pass


class ExchangeFailedError(AuthorizationError):
    """Raised when the authorization code cannot be exchanged for tokens."""

    def __init__(self, reason: str, details: str | None = None) -> None:
        self.reason = reason
        super().__init__(f"Token exchange failed: {reason}", details)


class RefreshFailedError(KickError):
    """Raised when the refresh grant is rejected or unreachable."""

    pass


class TransportError(KickError):
    """Raised when the chat connection cannot be opened or is lost."""

    pass


class ChannelLookupFailedError(TransportError):
    """Raised when a channel's chatroom cannot be resolved."""

    pass


class ProtocolError(KickError):
    """Raised when protocol parsing fails."""

    pass


class MalformedFrameError(ProtocolError):
    """Raised when an inbound chat frame cannot be understood."""

    pass


class NotConnectedError(KickError):
    """Raised when a message cannot be sent or queued."""

    pass
