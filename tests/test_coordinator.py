"""
Tests for kickpy SessionCoordinator.

Uses mocked sessions and authorizer to check session replacement,
refresh notifications and the surface exposed to the HTTP layer.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from kickpy import BotConfig, ChatSession, Credential, KickAPI, SessionCoordinator
from kickpy.exceptions import NotConnectedError, StateMismatchError
from kickpy.models import TokenResponse


def make_credential(channel: str = "streamer", token: str = "access") -> Credential:
    return Credential(
        channel=channel,
        access_token=token,
        refresh_token="refresh",
        expires_at=2_000_000_000.0,
    )


@pytest.fixture
def config(tmp_path):
    return BotConfig(
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri="http://localhost:3000/callback",
        tokens_file=tmp_path / "tokens.json",
    )


@pytest.fixture
def sessions():
    return []


@pytest.fixture
def coordinator(config, sessions):
    def factory(credential):
        session = Mock(spec=ChatSession)
        session.channel = credential.channel
        session.access_token = credential.access_token
        session.take_pending.return_value = None
        sessions.append(session)
        return session

    return SessionCoordinator(
        config, api=AsyncMock(spec=KickAPI), session_factory=factory
    )


class TestActivation:
    """Test installing and replacing the current session."""

    @pytest.mark.asyncio
    async def test_activate_opens_session(self, coordinator, sessions):
        """Test activation opens a session for the credential's channel."""
        session = await coordinator.activate(make_credential())

        assert coordinator.current_channel() == "streamer"
        assert coordinator.session is session
        session.open.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_activate_closes_previous_session_first(self, coordinator, sessions):
        """Test the old session is closed before the new one opens."""
        order = []
        await coordinator.activate(make_credential("first"))
        sessions[0].close.side_effect = lambda: order.append("close")

        await coordinator.activate(make_credential("second"))
        sessions[1].open.assert_awaited_once()

        assert order == ["close"]
        assert coordinator.current_channel() == "second"
        assert coordinator.session is sessions[1]

    @pytest.mark.asyncio
    async def test_on_refreshed_restarts_current_channel(self, coordinator, sessions):
        """Test a refreshed credential restarts the session with the new token."""
        await coordinator.activate(make_credential(token="old"))

        await coordinator.on_refreshed(make_credential(token="new"))

        sessions[0].close.assert_awaited_once()
        assert sessions[1].access_token == "new"

    @pytest.mark.asyncio
    async def test_on_refreshed_ignores_other_channel(self, coordinator, sessions):
        """Test a refresh for a channel that is not current changes nothing."""
        await coordinator.activate(make_credential("streamer"))

        await coordinator.on_refreshed(make_credential("someone-else"))

        assert len(sessions) == 1
        sessions[0].close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_refresh_moves_queued_message(self, coordinator, sessions):
        """Test a message queued on the old session is queued on the new one."""
        await coordinator.activate(make_credential(token="old"))
        sessions[0].take_pending.return_value = "hello world"

        await coordinator.on_refreshed(make_credential(token="new"))

        sessions[1].send.assert_awaited_once_with("hello world")
        calls = [name for name, _, _ in sessions[1].method_calls]
        assert calls.index("send") < calls.index("open")

    @pytest.mark.asyncio
    async def test_new_channel_does_not_inherit_queued_message(
        self, coordinator, sessions
    ):
        """Test switching channels leaves the old queue to be dropped on close."""
        await coordinator.activate(make_credential("first"))

        await coordinator.activate(make_credential("second"))

        sessions[0].take_pending.assert_not_called()
        sessions[0].close.assert_awaited_once()
        sessions[1].send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stop_closes_session(self, coordinator, sessions):
        """Test stopping closes the session and clears the channel."""
        await coordinator.activate(make_credential())

        await coordinator.stop()

        sessions[0].close.assert_awaited_once()
        assert coordinator.current_channel() is None
        assert coordinator.session is None

    def test_no_channel_initially(self, coordinator):
        """Test a fresh coordinator has no current channel."""
        assert coordinator.current_channel() is None
        assert coordinator.get_status()["session"] is None


class TestStartup:
    """Test resuming a stored channel at startup."""

    @pytest.mark.asyncio
    async def test_start_resumes_configured_channel(self, config, sessions, coordinator):
        """Test the configured channel is activated when it has a credential."""
        coordinator.config = config.model_copy(update={"channel": "streamer"})
        coordinator.store.put("streamer", make_credential())

        await coordinator.start()
        try:
            assert coordinator.current_channel() == "streamer"
            assert coordinator.refresher.is_running()
        finally:
            await coordinator.stop()

    @pytest.mark.asyncio
    async def test_start_refreshes_expired_credential(
        self, config, sessions, coordinator
    ):
        """Test an expired stored token is renewed before the session opens."""
        coordinator.config = config.model_copy(update={"channel": "streamer"})
        coordinator.store.put(
            "streamer",
            Credential(
                channel="streamer",
                access_token="stale",
                refresh_token="refresh",
                expires_at=1.0,
            ),
        )
        coordinator.api.refresh_token.return_value = TokenResponse(
            access_token="fresh", refresh_token="refresh-2", expires_in=3600
        )

        await coordinator.start()
        try:
            coordinator.api.refresh_token.assert_awaited_once_with("refresh")
            assert len(sessions) == 1
            assert sessions[0].access_token == "fresh"
        finally:
            await coordinator.stop()

    @pytest.mark.asyncio
    async def test_start_without_credential_waits(self, config, sessions, coordinator):
        """Test a configured channel without credential does not start a session."""
        coordinator.config = config.model_copy(update={"channel": "streamer"})

        await coordinator.start()
        try:
            assert coordinator.current_channel() is None
            assert sessions == []
        finally:
            await coordinator.stop()

        assert not coordinator.refresher.is_running()


class TestAuthorizationSurface:
    """Test the operations used by the HTTP handlers."""

    @pytest.mark.asyncio
    async def test_complete_authorization_stores_and_activates(
        self, coordinator, sessions
    ):
        """Test a successful callback persists the credential and starts chat."""
        credential = make_credential()
        coordinator.authorizer = Mock()
        coordinator.authorizer.complete_authorization = AsyncMock(
            return_value=credential
        )

        result = await coordinator.complete_authorization("sid", "state", "code")

        assert result == credential
        assert coordinator.store.get("streamer") == credential
        assert coordinator.current_channel() == "streamer"
        sessions[0].open.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_authorization_changes_nothing(self, coordinator, sessions):
        """Test a rejected callback leaves store and session untouched."""
        coordinator.begin_authorization("sid")

        with pytest.raises(StateMismatchError):
            await coordinator.complete_authorization("sid", "forged", "code")

        assert coordinator.store.channels() == []
        assert coordinator.current_channel() is None
        assert sessions == []

    @pytest.mark.asyncio
    async def test_send_without_session(self, coordinator):
        """Test sending before any authorization reports NotConnected."""
        with pytest.raises(NotConnectedError):
            await coordinator.send("hello")

    @pytest.mark.asyncio
    async def test_send_delegates_to_session(self, coordinator, sessions):
        """Test sending goes to the current session."""
        await coordinator.activate(make_credential())
        sessions[0].send.return_value = True

        assert await coordinator.send("hello") is True
        sessions[0].send.assert_awaited_once_with("hello")
