"""Key-value settings store for calendar preferences and OAuth tokens."""

import logging

from adept.data.database import Database

logger = logging.getLogger(__name__)


class SettingsStore:
    """String key-value settings persisted in the ``Settings`` table."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def get(self, key: str) -> str | None:
        """Get a value, or None when the key is not set."""
        row = await self.db.fetch_one("SELECT value FROM Settings WHERE key = ?", (key,))
        return row["value"] if row else None

    async def set(self, key: str, value: str) -> None:
        """Insert or overwrite a value."""
        await self.db.execute(
            "INSERT INTO Settings (key, value, last_modified) VALUES (?, ?, CURRENT_TIMESTAMP)"
            " ON CONFLICT(key) DO UPDATE SET value = excluded.value,"
            " last_modified = CURRENT_TIMESTAMP",
            (key, value),
        )

    async def delete(self, key: str) -> None:
        """Remove a key (no-op if absent)."""
        await self.db.execute("DELETE FROM Settings WHERE key = ?", (key,))

    async def exists(self, key: str) -> bool:
        """Check whether a key is set."""
        return await self.get(key) is not None
