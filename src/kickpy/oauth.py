"""PKCE authorization code flow.

Issues authorization attempts keyed by the caller's browser session and
completes them on callback. Each attempt is single-use: it is removed
before the code exchange starts, whatever the outcome.
"""

import logging
import secrets
import time
from collections.abc import Callable

from .api import KickAPI
from .exceptions import ExchangeFailedError, NoAttemptError, StateMismatchError
from .models import AuthorizationAttempt, Credential, generate_code_challenge

logger = logging.getLogger(__name__)

__all__ = [
    "ATTEMPT_TTL",
    "DEFAULT_SCOPES",
    "PKCEAuthorizer",
    "generate_code_challenge",
    "generate_code_verifier",
    "generate_state",
]

DEFAULT_SCOPES = ["chat:read", "chat:write", "user:read"]

# Seconds a redirect stays valid
ATTEMPT_TTL = 600.0


def generate_code_verifier() -> str:
    """Generate a PKCE verifier from 32 random bytes."""
    return secrets.token_urlsafe(32)


def generate_state() -> str:
    """Generate an opaque CSRF state token."""
    return secrets.token_urlsafe(16)


class PKCEAuthorizer:
    """Runs the authorization code + PKCE flow against the platform."""

    def __init__(
        self,
        api: KickAPI,
        scopes: list[str] | None = None,
        clock: Callable[[], float] = time.time,
        attempt_ttl: float = ATTEMPT_TTL,
    ) -> None:
        if attempt_ttl <= 0:
            raise ValueError("Attempt TTL must be positive")
        self.api = api
        self.scopes = list(scopes or DEFAULT_SCOPES)
        self.attempt_ttl = attempt_ttl
        self._clock = clock
        self._attempts: dict[str, AuthorizationAttempt] = {}

    def begin_authorization(self, session_id: str) -> str:
        """Start an attempt for ``session_id`` and return the redirect URL.

        A new attempt replaces any attempt still pending for the same session.
        Attempts older than ``attempt_ttl`` are discarded.
        """
        now = self._clock()
        self._prune(now)
        attempt = AuthorizationAttempt(
            state=generate_state(),
            code_verifier=generate_code_verifier(),
            issued_at=now,
        )
        self._attempts[session_id] = attempt
        logger.info(f"Authorization started for session {session_id}")
        return self.api.authorization_url(
            attempt.state, attempt.code_challenge, self.scopes
        )

    def pending_attempt(self, session_id: str) -> AuthorizationAttempt | None:
        """Get the attempt waiting on a callback for ``session_id``."""
        return self._attempts.get(session_id)

    def _prune(self, now: float) -> None:
        expired = [
            session_id
            for session_id, attempt in self._attempts.items()
            if attempt.expired(self.attempt_ttl, now)
        ]
        for session_id in expired:
            del self._attempts[session_id]
        if expired:
            logger.info(f"Discarded {len(expired)} expired authorization attempts")

    async def complete_authorization(
        self,
        session_id: str,
        state: str | None,
        code: str | None,
        error: str | None = None,
    ) -> Credential:
        """Validate a callback and exchange its code for a credential.

        Raises:
            NoAttemptError: No attempt is pending for ``session_id``, or it
                expired.
            StateMismatchError: ``state`` differs from the issued state.
            ExchangeFailedError: The platform reported an error, no code was
                received, or the token or user lookup failed.
        """
        attempt = self._attempts.pop(session_id, None)
        if attempt is None:
            raise NoAttemptError("No authorization attempt is pending for this session")
        if attempt.expired(self.attempt_ttl, self._clock()):
            raise NoAttemptError("Authorization attempt expired")

        if error:
            raise ExchangeFailedError(f"authorization denied: {error}")
        if not code:
            raise ExchangeFailedError("no authorization code received")
        if state != attempt.state:
            logger.warning(f"State mismatch on callback for session {session_id}")
            raise StateMismatchError("Authorization state does not match")

        issued_at = self._clock()
        token = await self.api.exchange_code(code, attempt.code_verifier)
        if not token.refresh_token:
            raise ExchangeFailedError("token response has no refresh token")
        username = await self.api.get_username(token.access_token)

        logger.info(f"Authorized channel {username}")
        return Credential.from_token_response(username, token, issued_at)
