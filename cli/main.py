"""newsvault CLI: entry-point for all crawler operations.

Usage:
    python cli/main.py --help

Sub-command groups:
    db     → archive database (init, stats, recent)
    crawl  → periodic crawling, single ticks, discovery checks
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from newsvault.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import typer

from cli.commands.crawl import crawl_app
from cli.commands.db import db_app
from newsvault.logging_config import setup_logging

app = typer.Typer(
    name="newsvault",
    help="Periodic news discovery and archiving.",
    no_args_is_help=True,
)
app.add_typer(db_app, name="db")
app.add_typer(crawl_app, name="crawl")


@app.callback()
def main() -> None:
    """Configure logging before any command runs."""
    setup_logging()


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
