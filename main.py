#!/usr/bin/env python3
"""
kickpy - Kick chat bot session manager

Runs the bot from the command line. Configuration comes from the
environment or a .env file (see kickpy.config). When no stored credential
exists for KICK_CHANNEL, the authorization URL is printed and the URL the
browser was redirected to is read back from stdin.
"""

import asyncio
import logging
import sys
import urllib.parse

import kickpy

# Set up logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

CLI_SESSION = "cli"


async def authorize_interactively(coordinator: kickpy.SessionCoordinator) -> None:
    """Walk the user through the browser authorization."""
    url = coordinator.begin_authorization(CLI_SESSION)
    print(f"\n🔑 Open this URL and approve the bot:\n   {url}\n")
    redirected = await asyncio.to_thread(
        input, "📋 Paste the URL you were redirected to: "
    )

    query = urllib.parse.parse_qs(urllib.parse.urlparse(redirected.strip()).query)
    credential = await coordinator.complete_authorization(
        CLI_SESSION,
        state=query.get("state", [None])[0],
        code=query.get("code", [None])[0],
        error=query.get("error", [None])[0],
    )
    print(f"✅ Authorized! Bot connected to channel @{credential.channel}")


async def run(config: kickpy.BotConfig) -> None:
    async with kickpy.SessionCoordinator(config) as coordinator:
        if coordinator.current_channel() is None:
            try:
                await authorize_interactively(coordinator)
            except kickpy.AuthorizationError as e:
                print(f"❌ Authorization failed: {e.message}")
                return

        print("🤖 Bot running, press Ctrl+C to stop")
        await asyncio.Event().wait()


def main() -> None:
    """Main entry point."""
    env_file = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        config = kickpy.BotConfig.from_env(env_file)
    except kickpy.ConfigurationError as e:
        print(f"❌ {e.message}")
        print("   Set KICK_CLIENT_ID, KICK_CLIENT_SECRET and REDIRECT_URI")
        sys.exit(1)

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        print("\n⏹️  Bot stopped by user")


if __name__ == "__main__":
    main()
