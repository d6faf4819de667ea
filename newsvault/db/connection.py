"""SQLite connection factory.

Usage::

    from newsvault.db.connection import get_connection

    with get_connection() as conn:
        cursor = conn.execute("SELECT COUNT(*) FROM archives")
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional, Union

from newsvault.config import settings


def get_connection(db_path: Optional[Union[Path, str]] = None) -> sqlite3.Connection:
    """Open and configure a SQLite connection.

    Steps performed on every new connection:
    1. Create the parent directory of an on-disk database.
    2. Switch to WAL journal mode so readers never block the crawler's writes.

    Args:
        db_path: Override the DB path (``":memory:"`` is accepted).  Defaults
            to ``settings.db_path``.

    Returns:
        A configured :class:`sqlite3.Connection` with ``row_factory`` set to
        :class:`sqlite3.Row` so columns can be accessed by name.
    """
    path = db_path or settings.db_path

    if str(path) != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")

    return conn
