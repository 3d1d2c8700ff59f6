"""Event handler management for kickpy.

Lets applications observe a chat session: inbound messages and other
frames, lifecycle transitions, and errors. Handlers may be plain or
``async`` callables; async handlers are scheduled as tasks on the running
loop.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .models import (
    ChatMessage,
    ConnectedEvent,
    DisconnectEvent,
    EventType,
    OtherEvent,
    ReconnectingEvent,
)

logger = logging.getLogger(__name__)

# Type hints for handlers - can be either sync or async
HandlerFunc = (
    Callable[[EventType, Any], None]  # Sync: (event, session) -> None
    | Callable[[EventType, Any], Awaitable[None]]  # Async
)

ErrorHandlerFunc = (
    Callable[[str, Any], None]  # Sync: (error_message, session) -> None
    | Callable[[str, Any], Awaitable[None]]  # Async
)

SocketErrorHandlerFunc = (
    Callable[[Exception, Any], None]  # Sync: (exception, session) -> None
    | Callable[[Exception, Any], Awaitable[None]]  # Async
)


class EventHandlers:
    """Manages event handler registration and dispatch."""

    def __init__(self) -> None:
        """Initialize EventHandlers with empty handler lists."""
        # Inbound frame handlers
        self.message_handlers: list[HandlerFunc] = []
        self.other_handlers: list[HandlerFunc] = []

        # Connection event handlers
        self.connected_handlers: list[HandlerFunc] = []
        self.disconnect_handlers: list[HandlerFunc] = []
        self.reconnecting_handlers: list[HandlerFunc] = []

        # Error handlers
        self.error_handlers: list[ErrorHandlerFunc] = []
        self.socket_error_handlers: list[SocketErrorHandlerFunc] = []

        # Generic event handlers (called for all events)
        self.generic_handlers: list[HandlerFunc] = []

    # Handler registration methods
    def add_message_handler(self, handler: HandlerFunc) -> HandlerFunc:
        """Add a handler for chat messages."""
        self.message_handlers.append(handler)
        return handler

    def add_other_handler(self, handler: HandlerFunc) -> HandlerFunc:
        """Add a handler for non-message frames."""
        self.other_handlers.append(handler)
        return handler

    def add_connected_handler(self, handler: HandlerFunc) -> HandlerFunc:
        """Add a handler for sessions becoming active."""
        self.connected_handlers.append(handler)
        return handler

    def add_disconnect_handler(self, handler: HandlerFunc) -> HandlerFunc:
        """Add a handler for disconnection events."""
        self.disconnect_handlers.append(handler)
        return handler

    def add_reconnecting_handler(self, handler: HandlerFunc) -> HandlerFunc:
        """Add a handler for scheduled connection attempts."""
        self.reconnecting_handlers.append(handler)
        return handler

    def add_error_handler(self, handler: ErrorHandlerFunc) -> ErrorHandlerFunc:
        """Add a handler for chat errors such as malformed frames."""
        self.error_handlers.append(handler)
        return handler

    def add_socket_error_handler(
        self, handler: SocketErrorHandlerFunc
    ) -> SocketErrorHandlerFunc:
        """Add a handler for websocket and handler exceptions."""
        self.socket_error_handlers.append(handler)
        return handler

    def add_generic_handler(self, handler: HandlerFunc) -> HandlerFunc:
        """Add a handler that receives all events."""
        self.generic_handlers.append(handler)
        return handler

    def remove_message_handler(self, handler: HandlerFunc) -> bool:
        """Remove a message handler. Returns True if found and removed."""
        try:
            self.message_handlers.remove(handler)
            return True
        except ValueError:
            return False

    def clear_handlers(self) -> None:
        """Remove all registered handlers."""
        for handlers in (
            self.message_handlers,
            self.other_handlers,
            self.connected_handlers,
            self.disconnect_handlers,
            self.reconnecting_handlers,
            self.error_handlers,
            self.socket_error_handlers,
            self.generic_handlers,
        ):
            handlers.clear()

    # Event dispatching
    def dispatch_event(self, event: EventType, session: Any) -> None:
        """Dispatch an event to the appropriate handlers."""
        # Always call generic handlers first
        self._call_handlers(self.generic_handlers, event, session)

        if isinstance(event, ChatMessage):
            self._call_handlers(self.message_handlers, event, session)
        elif isinstance(event, OtherEvent):
            self._call_handlers(self.other_handlers, event, session)
        elif isinstance(event, ConnectedEvent):
            self._call_handlers(self.connected_handlers, event, session)
        elif isinstance(event, DisconnectEvent):
            self._call_handlers(self.disconnect_handlers, event, session)
        elif isinstance(event, ReconnectingEvent):
            self._call_handlers(self.reconnecting_handlers, event, session)

    def dispatch_error(self, error_message: str, session: Any) -> None:
        """Dispatch an error to error handlers."""
        for handler in self.error_handlers:
            self._invoke(handler, error_message, session, report=False)

    def dispatch_socket_error(self, exception: Exception, session: Any) -> None:
        """Dispatch a socket error to socket error handlers."""
        for handler in self.socket_error_handlers:
            self._invoke(handler, exception, session, report=False)

    def _call_handlers(
        self, handlers: list[HandlerFunc], event: EventType, session: Any
    ) -> None:
        """Safely call a list of event handlers."""
        for handler in handlers:
            self._invoke(handler, event, session, report=True)

    def _invoke(
        self, handler: Callable[..., Any], payload: Any, session: Any, report: bool
    ) -> None:
        """Call one handler, scheduling it as a task if it is async.

        Exceptions are logged. When ``report`` is set they are also passed to
        the socket error handlers.
        """
        try:
            if inspect.iscoroutinefunction(handler):
                try:
                    loop = asyncio.get_running_loop()
                except RuntimeError:
                    logger.error(
                        f"Async handler {handler} called outside event loop context"
                    )
                    return
                task: asyncio.Task[None] = loop.create_task(handler(payload, session))
                task.add_done_callback(
                    lambda t: self._handle_async_handler_error(t, handler, session, report)
                )
            else:
                handler(payload, session)
        except Exception as e:
            logger.error(f"Error in event handler {handler}: {e}", exc_info=True)
            if report:
                self.dispatch_socket_error(e, session)

    def _handle_async_handler_error(
        self,
        task: asyncio.Task[None],
        handler: Callable[..., Any],
        session: Any,
        report: bool,
    ) -> None:
        """Handle errors from async handler tasks."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.error(f"Error in async event handler {handler}: {exc}", exc_info=exc)
        if report and isinstance(exc, Exception):
            self.dispatch_socket_error(exc, session)
