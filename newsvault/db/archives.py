"""Queries over the ``archives`` table."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from time import time
from typing import Iterable, Optional

from newsvault.classify import category_from_text
from newsvault.db.models import ArchivedEntity


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_archive(row: sqlite3.Row) -> ArchivedEntity:
    publish_time = row["publish_time"]
    return ArchivedEntity(
        id=row["id"],
        title=row["title"],
        url=row["url"],
        text_length=row["text_length"],
        image_count=row["image_count"],
        content=row["content"],
        category=category_from_text(row["category"]),
        publish_time=datetime.fromisoformat(publish_time) if publish_time else None,
        publisher=row["publisher"],
        created_at=row["created_at"],
    )


def _not_in_clause(ids: Iterable[int]) -> tuple[str, list[int]]:
    id_list = [int(i) for i in ids]
    if not id_list:
        return "", []
    placeholders = ", ".join("?" for _ in id_list)
    return f"id NOT IN ({placeholders})", id_list


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def insert_archives(conn: sqlite3.Connection, entities: Iterable[ArchivedEntity]) -> int:
    """Insert entities in one transaction, ignoring URLs already stored.

    Returns:
        The number of rows actually inserted.
    """
    now = int(time())
    rows = [
        (
            e.title,
            e.url,
            e.text_length,
            e.image_count,
            e.publish_time_text(),
            e.publisher,
            e.content,
            e.category_text(),
            e.created_at or now,
        )
        for e in entities
    ]
    if not rows:
        return 0

    before = conn.total_changes
    with conn:
        conn.executemany(
            """
            INSERT OR IGNORE INTO archives
                (title, url, text_length, image_count, publish_time,
                 publisher, content, category, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
    return conn.total_changes - before


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def list_urls(conn: sqlite3.Connection) -> set[str]:
    """Every stored URL, read in a single query."""
    return {row[0] for row in conn.execute("SELECT url FROM archives")}


def get_archive_by_url(conn: sqlite3.Connection, url: str) -> Optional[ArchivedEntity]:
    row = conn.execute("SELECT * FROM archives WHERE url = ?", (url,)).fetchone()
    return _row_to_archive(row) if row else None


def count_archives(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM archives").fetchone()[0]


def get_last(conn: sqlite3.Connection, count: int = 20) -> list[ArchivedEntity]:
    """Most recently published archives first; undated rows sort last."""
    rows = conn.execute(
        """
        SELECT * FROM archives
        ORDER BY publish_time IS NULL, publish_time DESC, id DESC
        LIMIT ?
        """,
        (count,),
    ).fetchall()
    return [_row_to_archive(r) for r in rows]


def get_random_except(
    conn: sqlite3.Connection, ids: Iterable[int] = ()
) -> Optional[ArchivedEntity]:
    """Pick one random archive whose id is not in *ids*.

    Returns ``None`` when the table holds one row or fewer, or when every row
    is excluded.
    """
    if count_archives(conn) <= 1:
        return None

    clause, params = _not_in_clause(ids)
    where = f"WHERE {clause}" if clause else ""
    row = conn.execute(
        f"SELECT * FROM archives {where} ORDER BY RANDOM() LIMIT 1", params
    ).fetchone()
    return _row_to_archive(row) if row else None


def get_random_batch_except(
    conn: sqlite3.Connection,
    ids: Iterable[int] = (),
    older_than_days: int = 7,
    count: int = 10,
) -> list[ArchivedEntity]:
    """Pick *count* random archives published more than *older_than_days* ago.

    Rows listed in *ids* are excluded.  Returns an empty list when fewer than
    *count* rows qualify.
    """
    cutoff = (datetime.now(timezone.utc) - timedelta(days=older_than_days)).isoformat()
    conditions = ["publish_time IS NOT NULL", "publish_time < ?"]
    params: list = [cutoff]

    clause, id_params = _not_in_clause(ids)
    if clause:
        conditions.append(clause)
        params.extend(id_params)

    rows = conn.execute(
        f"""
        SELECT * FROM archives
        WHERE {' AND '.join(conditions)}
        ORDER BY RANDOM()
        LIMIT ?
        """,
        (*params, count),
    ).fetchall()
    if len(rows) < count:
        return []
    return [_row_to_archive(r) for r in rows]
