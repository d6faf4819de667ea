"""Centralised settings for the newsvault crawler.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from the project root (one level up from this package)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_path_or_none(name: str) -> Optional[Path]:
    raw = os.environ.get(name, "").strip()
    return Path(raw) if raw else None


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("NEWSVAULT_WORKSPACE", Path.home() / ".newsvault")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "archives.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # Root folder for archived text/images.  ``None`` keeps everything in
    # the database only.
    output_root: Optional[Path] = field(
        default_factory=lambda: _env_path_or_none("ARCHIVE_OUTPUT_ROOT")
    )

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    crawl_interval_seconds: float = field(
        default_factory=lambda: float(os.environ.get("CRAWL_INTERVAL_SECONDS", "600"))
    )
    enabled_sites: list[str] = field(
        default_factory=lambda: _env_list("ENABLED_SITES", "toutiao,netease")
    )

    # ------------------------------------------------------------------
    # Browser automation
    # ------------------------------------------------------------------
    headless: bool = field(default_factory=lambda: _env_bool("BROWSER_HEADLESS", True))
    browser_args: list[str] = field(
        default_factory=lambda: _env_list(
            "BROWSER_ARGS", "--no-sandbox,--disable-dev-shm-usage"
        )
    )
    navigation_timeout_ms: int = field(
        default_factory=lambda: int(os.environ.get("NAVIGATION_TIMEOUT_MS", "30000"))
    )
    anchor_wait_timeout_ms: int = field(
        default_factory=lambda: int(os.environ.get("ANCHOR_WAIT_TIMEOUT_MS", "5000"))
    )
    scroll_step_delay_ms: int = field(
        default_factory=lambda: int(os.environ.get("SCROLL_STEP_DELAY_MS", "500"))
    )

    # ------------------------------------------------------------------
    # HTTP (image downloads)
    # ------------------------------------------------------------------
    http_timeout: float = field(
        default_factory=lambda: float(os.environ.get("HTTP_TIMEOUT", "30.0"))
    )
    user_agent: str = field(
        default_factory=lambda: os.environ.get(
            "HTTP_USER_AGENT",
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0 Safari/537.36",
        )
    )

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------
    env: str = field(default_factory=lambda: os.environ.get("NEWSVAULT_ENV", "local"))
    log_level: str = field(default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO"))
    logfire_token: Optional[str] = field(
        default_factory=lambda: os.environ.get("LOGFIRE_TOKEN") or None
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton, import this everywhere:
#   from newsvault.config import settings
settings = Settings()
