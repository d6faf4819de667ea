"""Database commands: initialise and inspect the archive store."""

from __future__ import annotations

import typer

from newsvault.config import settings
from newsvault.db import count_archives, get_connection, get_last, init_db

db_app = typer.Typer(help="Archive database operations.", no_args_is_help=True)


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    try:
        init_db(conn)
    finally:
        conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


@db_app.command("stats")
def db_stats() -> None:
    """Show how many articles are archived."""
    conn = get_connection()
    try:
        init_db(conn)
        total = count_archives(conn)
    finally:
        conn.close()
    typer.echo(f"[db stats] {total} archived article(s) in {settings.db_path}")


@db_app.command("recent")
def db_recent(
    count: int = typer.Option(20, "--count", "-n", min=1, help="Number of articles to show."),
) -> None:
    """List the most recently published archives."""
    conn = get_connection()
    try:
        init_db(conn)
        rows = get_last(conn, count=count)
    finally:
        conn.close()

    if not rows:
        typer.echo("[db recent] No archived articles yet.")
        return
    for a in rows:
        when = a.publish_time.strftime("%Y-%m-%d %H:%M") if a.publish_time else "----------------"
        typer.echo(f"  {when}  [{a.category_text()}]  {a.title!r}")
        typer.echo(f"      {a.url}")
