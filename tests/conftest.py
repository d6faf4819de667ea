"""Shared pytest configuration."""

import os

# The suite does not call setup_logging(); silence logfire's "not configured" warning.
os.environ.setdefault("LOGFIRE_IGNORE_NO_CONFIG", "1")
