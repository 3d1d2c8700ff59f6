"""Session coordination.

The coordinator is the one object the surrounding application talks to.
It owns the current channel and its chat session, and wires together the
authorizer, the credential store and the token refresher.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from .api import KickAPI
from .config import BotConfig
from .exceptions import NotConnectedError
from .models import Credential
from .oauth import PKCEAuthorizer
from .refresher import TokenRefresher
from .responder import CommandResponder
from .session import ChatSession, Responder
from .store import CredentialStore

logger = logging.getLogger(__name__)

SessionFactory = Callable[[Credential], ChatSession]


class SessionCoordinator:
    """Owns the single current channel and its live chat session.

    Replacing a session is serialized: the old session is fully closed,
    including its pending reconnect timer, before the new one opens.
    """

    def __init__(
        self,
        config: BotConfig,
        api: KickAPI | None = None,
        store: CredentialStore | None = None,
        responder: Responder | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self.config = config
        self.api = api or KickAPI(
            client_id=config.client_id,
            client_secret=config.client_secret,
            redirect_uri=config.redirect_uri,
            oauth_url=config.oauth_url,
            api_url=config.api_url,
        )
        self.store = store or CredentialStore(config.tokens_file)
        self.responder: Responder = responder or CommandResponder()
        self.authorizer = PKCEAuthorizer(self.api, config.scopes)
        self.refresher = TokenRefresher(
            self.store,
            self.api,
            current_channel=self.current_channel,
            on_refreshed=self.on_refreshed,
            interval=config.refresh_interval,
            margin=config.refresh_margin,
        )
        self._session_factory = session_factory or self._default_session
        self._channel: str | None = None
        self._session: ChatSession | None = None
        self._lock = asyncio.Lock()

    def _default_session(self, credential: Credential) -> ChatSession:
        return ChatSession(
            channel=credential.channel,
            access_token=credential.access_token,
            api=self.api,
            responder=self.responder,
            chat_url=self.config.chat_url,
            reconnect_delay=self.config.reconnect_delay,
            retry_delay=self.config.retry_delay,
            connect_timeout=self.config.connect_timeout,
        )

    # Status
    def current_channel(self) -> str | None:
        """Channel currently bound to a chat session, if any."""
        return self._channel

    @property
    def session(self) -> ChatSession | None:
        return self._session

    def get_status(self) -> dict[str, Any]:
        """Summary for status pages."""
        return {
            "channel": self._channel,
            "session": self._session.get_connection_info() if self._session else None,
            "refresher_running": self.refresher.is_running(),
        }

    # Lifecycle
    async def start(self) -> None:
        """Start the refresher and resume the configured channel if it is stored."""
        self.refresher.start()

        channel = self.config.channel
        if channel is None:
            return
        if self.store.get(channel) is None:
            logger.info(f"No stored credential for {channel}, waiting for authorization")
            return

        # Renew an expired token before the first chatroom lookup
        await self.refresher.refresh(channel, notify=False)
        credential = self.store.get(channel)
        logger.info(f"Resuming stored credential for {channel}")
        await self.activate(credential)

    async def stop(self) -> None:
        """Stop the refresher and close the current session."""
        await self.refresher.stop()
        async with self._lock:
            if self._session is not None:
                await self._session.close()
            self._session = None
            self._channel = None

    async def __aenter__(self) -> "SessionCoordinator":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()

    async def activate(self, credential: Credential) -> ChatSession:
        """Replace the current session with one for ``credential.channel``.

        A message still queued on the old session moves to the new one when
        both are for the same channel.
        """
        async with self._lock:
            pending = None
            if self._session is not None:
                if self._session.channel == credential.channel:
                    pending = self._session.take_pending()
                logger.info(f"Stopping chat session for {self._session.channel}")
                await self._session.close()
                self._session = None

            self._channel = credential.channel
            session = self._session_factory(credential)
            self._session = session
            if pending is not None:
                await session.send(pending)
            await session.open()
            return session

    async def on_refreshed(self, credential: Credential) -> None:
        """Restart the chat session with a refreshed credential."""
        if credential.channel != self._channel:
            logger.info(
                f"Ignoring refreshed credential for inactive channel {credential.channel}"
            )
            return
        logger.info(f"Restarting chat for {credential.channel} with refreshed token")
        await self.activate(credential)

    # Surface for the HTTP layer
    def begin_authorization(self, session_id: str) -> str:
        """Start authorization for a browser session and return the redirect URL."""
        return self.authorizer.begin_authorization(session_id)

    async def complete_authorization(
        self,
        session_id: str,
        state: str | None,
        code: str | None,
        error: str | None = None,
    ) -> Credential:
        """Finish authorization, store the credential and start its chat session.

        Raises:
            AuthorizationError: If the callback is rejected or the exchange fails.
        """
        credential = await self.authorizer.complete_authorization(
            session_id, state, code, error
        )
        async with self.store.lock(credential.channel):
            self.store.put(credential.channel, credential)
        await self.activate(credential)
        return credential

    async def send(self, text: str) -> bool:
        """Send a message to the current channel's chat.

        Returns:
            True if transmitted, False if queued until the session is active.

        Raises:
            NotConnectedError: If no channel is authorized or the message can
                be neither sent nor queued.
        """
        if self._session is None:
            raise NotConnectedError("No channel is authorized")
        return await self._session.send(text)
