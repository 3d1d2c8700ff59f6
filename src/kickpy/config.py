"""Bot configuration loaded from the environment.

``BotConfig`` is a pydantic-settings model. Each field reads the environment
variable named by its ``validation_alias``, falling back to a ``.env`` file.
"""

from pathlib import Path
from typing import Annotated

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .exceptions import ConfigurationError


class KickEnvironment:
    """Endpoint bases for the Kick platform."""

    OAUTH = "https://id.kick.com"
    API = "https://kick.com"
    CHAT = "wss://ws.kick.com/chat/{chatroom_id}"


class BotConfig(BaseSettings):
    """Settings for the authorizer, refresher and chat session.

    Keyword arguments take precedence over the environment, which takes
    precedence over the ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    client_id: str = Field(
        min_length=1,
        validation_alias="KICK_CLIENT_ID",
        description="OAuth client identifier",
    )
    client_secret: str = Field(
        min_length=1,
        validation_alias="KICK_CLIENT_SECRET",
        description="OAuth client secret",
    )
    redirect_uri: str = Field(
        min_length=1,
        validation_alias="REDIRECT_URI",
        description="Registered callback URL",
    )
    # Space separated in the environment
    scopes: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["chat:read", "chat:write", "user:read"],
        validation_alias="KICK_SCOPES",
        description="Scopes requested on authorization",
    )
    tokens_file: Path = Field(
        default=Path("tokens.json"),
        validation_alias="KICK_TOKENS_FILE",
        description="Credential store location",
    )
    channel: str | None = Field(
        default=None,
        validation_alias="KICK_CHANNEL",
        description="Channel to resume at startup if authorized",
    )
    refresh_interval: float = Field(
        default=300.0,
        gt=0,
        validation_alias="KICK_REFRESH_INTERVAL",
        description="Seconds between refresh checks",
    )
    refresh_margin: float = Field(
        default=60.0,
        ge=0,
        validation_alias="KICK_REFRESH_MARGIN",
        description="Refresh this many seconds before expiry",
    )
    reconnect_delay: float = Field(
        default=5.0,
        ge=0,
        validation_alias="KICK_RECONNECT_DELAY",
        description="Seconds to wait after a lost connection",
    )
    retry_delay: float = Field(
        default=10.0,
        ge=0,
        validation_alias="KICK_RETRY_DELAY",
        description="Seconds to wait after a failed connect",
    )
    connect_timeout: float = Field(
        default=15.0,
        gt=0,
        validation_alias="KICK_CONNECT_TIMEOUT",
        description="Seconds allowed for the chat websocket handshake",
    )
    oauth_url: str = Field(
        default=KickEnvironment.OAUTH, validation_alias="KICK_OAUTH_URL"
    )
    api_url: str = Field(default=KickEnvironment.API, validation_alias="KICK_API_URL")
    chat_url: str = Field(
        default=KickEnvironment.CHAT, validation_alias="KICK_CHAT_URL"
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(cls, value: object) -> object:
        if isinstance(value, str):
            return value.split()
        return value

    @field_validator("channel", mode="before")
    @classmethod
    def _blank_channel(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "BotConfig":
        """Build a config from environment variables.

        Args:
            env_file: ``.env`` file to read instead of ``./.env``. Variables
                set in the environment take precedence over it.

        Raises:
            ConfigurationError: If a required variable is missing or a value
                is invalid.
        """
        overrides = {} if env_file is None else {"_env_file": env_file}
        try:
            return cls(**overrides)
        except ValidationError as e:
            names = ", ".join(
                str(error["loc"][0]) for error in e.errors() if error["loc"]
            )
            raise ConfigurationError(f"Invalid configuration: {names}", str(e)) from e
