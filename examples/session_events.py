#!/usr/bin/env python3
"""Watch a chat session's lifecycle events.

Opens a ChatSession for a channel that was already authorized with
main.py and logs every lifecycle event and message, then forces a
reconnect to show the retry path.
"""

import asyncio
import logging
import sys

from kickpy import BotConfig, ChatSession, CredentialStore, KickAPI

# Set up logging to see connection events
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def main(channel: str) -> None:
    """Open a session from stored credentials and log its events."""
    config = BotConfig.from_env()
    credential = CredentialStore(config.tokens_file).get(channel)
    if credential is None:
        logger.error(f"No stored credential for {channel}, run main.py first")
        return

    api = KickAPI(
        config.client_id,
        config.client_secret,
        config.redirect_uri,
        oauth_url=config.oauth_url,
        api_url=config.api_url,
    )
    session = ChatSession(
        channel,
        credential.access_token,
        api,
        chat_url=config.chat_url,
        reconnect_delay=config.reconnect_delay,
        retry_delay=config.retry_delay,
        connect_timeout=config.connect_timeout,
    )

    @session.add_connected_handler
    def on_connected(event, session_ref):
        logger.info(f"✅ ACTIVE in chatroom {event.chatroom_id}")

    @session.add_disconnect_handler
    def on_disconnect(event, session_ref):
        logger.warning(f"🔌 DISCONNECTED: {event.reason}")

    @session.add_reconnecting_handler
    def on_reconnecting(event, session_ref):
        logger.info(f"🔄 RETRY in {event.delay:.1f}s ({event.reason})")

    @session.add_message_handler
    def on_message(message, session_ref):
        logger.info(f"💬 {message.sender}: {message.body}")

    @session.add_error_handler
    def on_error(error, session_ref):
        logger.warning(f"⚠️  {error}")

    async with session:
        # Sent now, or queued if the first connect attempt failed
        if not await session.send("Bot event demo online"):
            logger.info("📥 Greeting queued until the session is active")
        await asyncio.sleep(15)

        logger.info("🔧 Forcing reconnection...")
        await session.force_reconnect()
        await asyncio.sleep(15)

        logger.info(f"📊 Connection info: {session.get_connection_info()}")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("usage: session_events.py <channel>")
        sys.exit(2)

    try:
        asyncio.run(main(sys.argv[1]))
    except KeyboardInterrupt:
        print("\n🛑 Demo interrupted by user")
