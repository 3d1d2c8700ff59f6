"""File-based credential persistence.

Credentials live in one JSON object keyed by channel. The file is chmod
0600 and replaced atomically, so a crash mid-write leaves the previous
contents intact.
"""

import asyncio
import json
import logging
import os
import stat
from pathlib import Path

from pydantic import ValidationError

from .models import Credential

logger = logging.getLogger(__name__)


class CredentialStore:
    """Durable channel -> Credential mapping.

    Mutations that depend on the current value (refresh, authorization)
    must hold ``lock(channel)`` across the read-modify-write.
    """

    def __init__(self, path: str | Path = "tokens.json") -> None:
        self.path = Path(path)
        self._credentials: dict[str, Credential] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self.load()

    def load(self) -> dict[str, Credential]:
        """Load persisted credentials, treating missing or corrupt storage as empty."""
        self._credentials = {}
        if not self.path.exists():
            return {}

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable credential file {self.path}: {e}")
            return {}

        if not isinstance(raw, dict):
            logger.warning(f"Ignoring credential file {self.path}: not a JSON object")
            return {}

        for channel, entry in raw.items():
            if not isinstance(entry, dict):
                logger.warning(f"Skipping invalid credential entry for {channel}")
                continue
            try:
                self._credentials[channel] = Credential.model_validate(
                    {**entry, "channel": channel}
                )
            except ValidationError as e:
                logger.warning(f"Skipping invalid credential entry for {channel}: {e}")

        logger.info(f"Loaded {len(self._credentials)} credential(s) from {self.path}")
        return dict(self._credentials)

    def get(self, channel: str) -> Credential | None:
        """Get the stored credential for a channel."""
        return self._credentials.get(channel)

    def put(self, channel: str, credential: Credential) -> None:
        """Insert or replace a channel's credential and persist it before returning."""
        if credential.channel != channel:
            raise ValueError(
                f"Credential for {credential.channel} cannot be stored under {channel}"
            )
        self._credentials[channel] = credential
        self._save()
        logger.info(f"Saved credential for {channel}")

    def channels(self) -> list[str]:
        """List all channels with stored credentials."""
        return list(self._credentials)

    def lock(self, channel: str) -> asyncio.Lock:
        """Get the lock serializing credential updates for a channel."""
        return self._locks.setdefault(channel, asyncio.Lock())

    def _save(self) -> None:
        data = {
            channel: credential.model_dump(exclude={"channel"})
            for channel, credential in self._credentials.items()
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.chmod(tmp_path, stat.S_IRUSR | stat.S_IWUSR)
        os.replace(tmp_path, self.path)
