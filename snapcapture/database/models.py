"""SQLite database schema and initialization."""

from __future__ import annotations

import aiosqlite

SCHEMA = """
CREATE TABLE IF NOT EXISTS ui_state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


async def initialize_db(db: aiosqlite.Connection):
    """Create tables if they don't exist."""
    await db.executescript(SCHEMA)
    await db.commit()
