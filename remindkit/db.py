"""Async SQLite connection helper shared by all stores.

Every store opens a short-lived ``aiosqlite`` connection per operation, so
each mutation is a single atomic statement followed by a commit.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite

from remindkit.config import settings

if TYPE_CHECKING:
    from pathlib import Path


async def get_connection(local_path_override: Path | None = None) -> aiosqlite.Connection:
    """Return an open aiosqlite connection with WAL mode and a busy timeout.

    If *local_path_override* is given (test isolation), it takes priority over
    ``settings.database_path``.
    """
    path = local_path_override or settings.database_path
    path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(path))
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA busy_timeout=5000")
    return db
