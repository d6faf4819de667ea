"""Logging setup: Pydantic Logfire for structured events, stdlib for the rest."""

from __future__ import annotations

import logging
from typing import Any, Optional

import logfire

from newsvault.config import Settings, settings as default_settings


def setup_logging(cfg: Optional[Settings] = None) -> None:
    """Configure Logfire and the root logger.

    Logfire only ships spans to the cloud when a token is configured;
    otherwise events are kept local and rendered to the console.
    """
    cfg = cfg or default_settings

    logfire_config: dict[str, Any] = {
        "service_name": "newsvault",
        "environment": cfg.env,
        "send_to_logfire": "if-token-present",
    }
    if cfg.logfire_token:
        logfire_config["token"] = cfg.logfire_token

    logfire.configure(**logfire_config)

    level = getattr(logging, cfg.log_level.upper(), logging.INFO)
    if cfg.env == "local":
        logging.basicConfig(
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
    else:
        # Logfire handles structured formatting
        logging.basicConfig(level=level, format="%(message)s")
