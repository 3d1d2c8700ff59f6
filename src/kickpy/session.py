"""Chat session for kickpy.

Owns the websocket connection to one channel's chatroom and drives it
through ``disconnected -> connecting -> authenticating -> active``. Lost
connections and failed lookups are retried on cancellable timers until
the session is closed.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import aiohttp

from .api import KickAPI
from .config import KickEnvironment
from .exceptions import (
    ChannelLookupFailedError,
    KickError,
    MalformedFrameError,
    NotConnectedError,
    TransportError,
)
from .handlers import (
    ErrorHandlerFunc,
    EventHandlers,
    HandlerFunc,
    SocketErrorHandlerFunc,
)
from .models import (
    ChatMessage,
    ConnectedEvent,
    DisconnectEvent,
    ReconnectingEvent,
    SessionPhase,
)
from .protocol import ProtocolHandler
from .responder import CommandResponder

logger = logging.getLogger(__name__)

Responder = Callable[[str, str], str | None]


class ChatSession:
    """Asynchronous chat session for a single Kick channel.

    Messages sent before the session is active are held in a queue of depth
    one and flushed on the next transition to ``active``.
    """

    def __init__(
        self,
        channel: str,
        access_token: str,
        api: KickAPI,
        responder: Responder | None = None,
        chat_url: str = KickEnvironment.CHAT,
        reconnect_delay: float = 5.0,
        retry_delay: float = 10.0,
        heartbeat: float | None = 30.0,
        connect_timeout: float = 15.0,
    ) -> None:
        """Initialize a new chat session.

        Args:
            channel: Channel (username) whose chatroom to join.
            access_token: Bearer token used for the lookup and the auth frame.
            api: Client used to resolve the chatroom identifier.
            responder: Maps (sender, lowercased body) to an optional reply.
            chat_url: WebSocket URL template with a ``{chatroom_id}`` field.
            reconnect_delay: Seconds to wait after a lost connection.
            retry_delay: Seconds to wait after a failed lookup or connect.
            heartbeat: Websocket ping interval in seconds, None to disable.
            connect_timeout: Seconds allowed for the websocket handshake.
        """
        if reconnect_delay < 0:
            raise ValueError("Reconnect delay must be non-negative")
        if retry_delay < 0:
            raise ValueError("Retry delay must be non-negative")
        if connect_timeout <= 0:
            raise ValueError("Connect timeout must be positive")

        self.channel = channel
        self.access_token = access_token
        self.api = api
        self.responder: Responder = responder or CommandResponder()
        self.chat_url = chat_url
        self.chatroom_id: int | None = None

        # Internal state
        self._phase = SessionPhase.DISCONNECTED
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._http: aiohttp.ClientSession | None = None
        self._running = False
        self._listen_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._pending: str | None = None
        self._attempts = 0

        # Connection configuration
        self._reconnect_delay = reconnect_delay
        self._retry_delay = retry_delay
        self._heartbeat = heartbeat
        self._connect_timeout = connect_timeout

        # Protocol and event handling
        self.protocol = ProtocolHandler()
        self.handlers = EventHandlers()

    @property
    def phase(self) -> SessionPhase:
        """Current lifecycle phase."""
        return self._phase

    def is_active(self) -> bool:
        """Check if the session is authenticated and can send immediately."""
        return (
            self._phase is SessionPhase.ACTIVE
            and self._ws is not None
            and not self._ws.closed
        )

    def is_running(self) -> bool:
        """Check if the session is open (connected or trying to connect)."""
        return self._running

    def has_pending(self) -> bool:
        """Check if a message is queued for the next activation."""
        return self._pending is not None

    def get_connection_info(self) -> dict[str, Any]:
        """Get detailed connection state information."""
        return {
            "channel": self.channel,
            "chatroom_id": self.chatroom_id,
            "phase": self._phase.value,
            "running": self._running,
            "attempts": self._attempts,
            "pending": self._pending is not None,
        }

    def take_pending(self) -> str | None:
        """Remove and return the queued message, if any."""
        content, self._pending = self._pending, None
        return content

    # Lifecycle
    async def open(self) -> None:
        """Start the session and make the first connection attempt.

        Failures are not raised; they schedule a retry instead.
        """
        if self._running:
            logger.warning(f"Session for {self.channel} already open")
            return

        self._running = True
        await self._connect()

    async def close(self) -> None:
        """Stop the session, cancel pending timers and close the socket."""
        if self._pending is not None:
            logger.warning(
                f"Dropping queued message for {self.channel} on close: {self._pending}"
            )
            self._pending = None
        if not self._running and self._phase is SessionPhase.DISCONNECTED:
            return

        logger.info(f"Closing chat session for {self.channel}")
        self._running = False

        for task in (self._reconnect_task, self._listen_task):
            if task and not task.done() and task is not asyncio.current_task():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._reconnect_task = None
        self._listen_task = None

        await self._cleanup()
        logger.info(f"Chat session for {self.channel} closed")

    async def force_reconnect(self) -> None:
        """Drop the current connection and connect again right away."""
        if self._listen_task and not self._listen_task.done():
            self._listen_task.cancel()
            try:
                await self._listen_task
            except asyncio.CancelledError:
                pass
        if self._reconnect_task and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        self._listen_task = None
        self._reconnect_task = None
        await self._cleanup()

        self._running = True
        await self._connect()

    async def __aenter__(self) -> "ChatSession":
        """Enter the async context manager by opening the session."""
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Exit the async context manager by closing the session."""
        await self.close()

    # Sending
    async def send(self, content: str) -> bool:
        """Send a chat message, or queue it until the session is active.

        Returns:
            True if the message was transmitted, False if it was queued.

        Raises:
            NotConnectedError: If the session is not active and a message is
                already queued, or if transmission fails.
        """
        frame = self.protocol.format_send_message(content)

        if self.is_active():
            await self._transmit(frame, content)
            return True

        if self._pending is not None:
            raise NotConnectedError(
                f"Chat for {self.channel} is not connected and a message is already queued"
            )

        self._pending = content
        logger.info(f"Chat for {self.channel} not active, queued message")
        return False

    async def _transmit(self, frame: str, content: str) -> None:
        if self._ws is None:
            raise NotConnectedError(f"Chat for {self.channel} is not connected")
        try:
            await self._ws.send_str(frame)
        except Exception as e:
            logger.error(f"Failed to send message: {e}")
            raise NotConnectedError(f"Failed to send message: {e}") from e
        logger.info(f"Sent to @{self.channel}: {content}")

    async def _flush_pending(self) -> None:
        if self._pending is None:
            return
        content, self._pending = self._pending, None
        try:
            await self._transmit(self.protocol.format_send_message(content), content)
        except NotConnectedError as e:
            logger.error(f"Dropped queued message for {self.channel}: {e}")

    # State machine
    def _set_phase(self, phase: SessionPhase) -> None:
        if phase is not self._phase:
            logger.info(f"Chat {self.channel}: {self._phase.value} -> {phase.value}")
            self._phase = phase

    async def _connect(self) -> None:
        """Run one pass of connecting -> authenticating -> active."""
        if not self._running:
            return

        self._attempts += 1
        self._set_phase(SessionPhase.CONNECTING)

        try:
            chatroom_id = await self.api.get_chatroom_id(self.channel, self.access_token)
        except ChannelLookupFailedError as e:
            logger.error(f"Connect error: {e}")
            self._schedule_connect(self._retry_delay, str(e))
            return

        url = self.chat_url.format(chatroom_id=chatroom_id)
        try:
            self._http = aiohttp.ClientSession()
            logger.info(f"Connecting to {url}")
            self._ws = await asyncio.wait_for(
                self._http.ws_connect(url, heartbeat=self._heartbeat),
                self._connect_timeout,
            )
        except Exception as e:
            error = TransportError(f"Failed to connect: {e}")
            logger.error(error.message)
            await self._close_transport()
            self._schedule_connect(self._retry_delay, error.message)
            return

        self.chatroom_id = chatroom_id
        self._set_phase(SessionPhase.AUTHENTICATING)
        try:
            await self._ws.send_str(self.protocol.format_auth(self.access_token))
        except Exception as e:
            logger.error(f"Failed to send auth frame: {e}")
            await self._handle_disconnect(f"auth send failed: {e}")
            return

        # The platform does not acknowledge auth, so the session is active
        # as soon as the auth frame is out.
        self._set_phase(SessionPhase.ACTIVE)
        self._attempts = 0
        logger.info(f"Connected to @{self.channel} chat")
        self.handlers.dispatch_event(
            ConnectedEvent(channel=self.channel, chatroom_id=chatroom_id), self
        )
        await self._flush_pending()

        self._listen_task = asyncio.create_task(self._listen_loop())

    def _schedule_connect(self, delay: float, reason: str) -> None:
        """Schedule the next connection attempt after ``delay`` seconds."""
        if not self._running:
            return
        logger.info(f"Reconnecting to @{self.channel} in {delay:.1f}s")
        self.handlers.dispatch_event(ReconnectingEvent(delay=delay, reason=reason), self)
        self._reconnect_task = asyncio.create_task(self._delayed_connect(delay))

    async def _delayed_connect(self, delay: float) -> None:
        await asyncio.sleep(delay)
        await self._connect()

    async def _handle_disconnect(self, reason: str) -> None:
        """Handle a lost connection and schedule a reconnect if still running."""
        await self._cleanup()
        logger.warning(f"Disconnected from @{self.channel} chat: {reason}")
        self.handlers.dispatch_event(DisconnectEvent(reason=reason), self)
        self._schedule_connect(self._reconnect_delay, reason)

    async def _listen_loop(self) -> None:
        """Process inbound frames in arrival order until the socket closes."""
        ws = self._ws
        if ws is None:
            return

        reason = "server closed connection"
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._handle_frame(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    ws_exception = ws.exception()
                    reason = f"websocket error: {ws_exception}"
                    if isinstance(ws_exception, Exception):
                        self.handlers.dispatch_socket_error(ws_exception, self)
                    break
        except asyncio.CancelledError:
            logger.debug("Listen loop cancelled")
            raise
        except Exception as e:
            logger.error(f"Error in listen loop: {e}")
            self.handlers.dispatch_socket_error(e, self)
            reason = f"listen loop error: {e}"

        self._listen_task = None
        await self._handle_disconnect(reason)

    async def _handle_frame(self, raw_frame: str) -> None:
        """Parse one frame, reply to chat messages and notify observers."""
        logger.debug(f"Received frame: {raw_frame}")
        try:
            event = self.protocol.parse_frame(raw_frame)
        except MalformedFrameError as e:
            logger.warning(f"Dropping malformed frame: {e.message}")
            self.handlers.dispatch_error(e.message, self)
            return

        if isinstance(event, ChatMessage):
            logger.info(f"[{event.sender}]: {event.body}")
            await self._reply(event)

        self.handlers.dispatch_event(event, self)

    async def _reply(self, message: ChatMessage) -> None:
        try:
            reply = self.responder(message.sender, message.body)
        except Exception as e:
            logger.error(f"Responder failed on message from {message.sender}: {e}")
            return
        if reply is None:
            return
        try:
            await self.send(reply)
        except KickError as e:
            logger.error(f"Failed to reply to {message.sender}: {e.message}")

    async def _cleanup(self) -> None:
        """Close the transport and mark the session disconnected."""
        await self._close_transport()
        self._set_phase(SessionPhase.DISCONNECTED)

    async def _close_transport(self) -> None:
        ws, self._ws = self._ws, None
        http, self._http = self._http, None
        try:
            if ws is not None and not ws.closed:
                await ws.close()
        except Exception as e:
            logger.error(f"Error closing websocket: {e}")
        if http is not None and not http.closed:
            await http.close()

    # Event handler registration methods
    def add_message_handler(self, handler: HandlerFunc) -> HandlerFunc:
        """Add a handler for chat messages."""
        return self.handlers.add_message_handler(handler)

    def add_other_handler(self, handler: HandlerFunc) -> HandlerFunc:
        """Add a handler for non-message frames."""
        return self.handlers.add_other_handler(handler)

    def add_connected_handler(self, handler: HandlerFunc) -> HandlerFunc:
        """Add a handler for the session becoming active."""
        return self.handlers.add_connected_handler(handler)

    def add_disconnect_handler(self, handler: HandlerFunc) -> HandlerFunc:
        """Add a handler for disconnection events."""
        return self.handlers.add_disconnect_handler(handler)

    def add_reconnecting_handler(self, handler: HandlerFunc) -> HandlerFunc:
        """Add a handler for scheduled connection attempts."""
        return self.handlers.add_reconnecting_handler(handler)

    def add_error_handler(self, handler: ErrorHandlerFunc) -> ErrorHandlerFunc:
        """Add a handler for chat errors."""
        return self.handlers.add_error_handler(handler)

    def add_socket_error_handler(
        self, handler: SocketErrorHandlerFunc
    ) -> SocketErrorHandlerFunc:
        """Add a handler for websocket errors."""
        return self.handlers.add_socket_error_handler(handler)

    def add_generic_handler(self, handler: HandlerFunc) -> HandlerFunc:
        """Add a handler that receives all events."""
        return self.handlers.add_generic_handler(handler)
