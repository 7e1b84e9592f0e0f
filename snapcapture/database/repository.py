"""Async repository for persisted UI state."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

import aiosqlite

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

UI_VISIBLE_KEY = "ui_visible"


class UiStateRepository:
    """Key/value store for UI state that must survive a restart."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def get(self, key: str) -> Optional[Any]:
        """Return the decoded value for ``key``, or None if unset."""
        async with self._db.execute("SELECT value FROM ui_state WHERE key = ?", (key,)) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    async def set(self, key: str, value: Any):
        await self._db.execute(
            """
            INSERT INTO ui_state (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, json.dumps(value), datetime.now(timezone.utc).isoformat()),
        )
        await self._db.commit()

    async def get_ui_visible(self) -> Optional[bool]:
        value = await self.get(UI_VISIBLE_KEY)
        return None if value is None else bool(value)

    async def set_ui_visible(self, visible: bool):
        await self.set(UI_VISIBLE_KEY, bool(visible))
        logger.info(f"Persisted UI visibility: {visible}")
