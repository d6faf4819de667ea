"""Unit-of-work boundary between the crawlers and the ``archives`` table."""

from __future__ import annotations

import sqlite3

import logfire

from newsvault.db.archives import insert_archives, list_urls
from newsvault.db.models import ArchivedEntity


class ArchiveStore:
    """Collects new archives in memory and writes them in one transaction.

    Crawlers read the stored URL set once per run, append the entities they
    keep, then call :meth:`commit`.  The unique index on ``url`` plus
    ``INSERT OR IGNORE`` make the write idempotent even if two runs race.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._pending: list[ArchivedEntity] = []

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    @property
    def pending(self) -> int:
        return len(self._pending)

    def existing_urls(self) -> set[str]:
        return list_urls(self._conn)

    def append(self, entity: ArchivedEntity) -> None:
        self._pending.append(entity)

    def commit(self) -> int:
        """Persist pending entities and clear the buffer.

        Returns:
            Number of rows inserted (duplicates are silently ignored).
        """
        if not self._pending:
            return 0
        batch, self._pending = self._pending, []
        inserted = insert_archives(self._conn, batch)
        if inserted < len(batch):
            logfire.debug(
                "Ignored duplicate archives on commit",
                pending=len(batch),
                inserted=inserted,
            )
        return inserted
