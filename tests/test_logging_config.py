"""Tests for logfire behaviour under the test suite."""

from __future__ import annotations

import os

import logfire


class TestUnconfiguredLogfire:
    def test_ignore_no_config_is_set(self) -> None:
        assert os.environ["LOGFIRE_IGNORE_NO_CONFIG"] == "1"

    def test_events_emit_no_configuration_warning(self, recwarn) -> None:
        logfire.info("Crawler finished", site="example", stored=0)
        logfire.warning("Image download failed", src="https://cdn.example/a.jpg", error="404")

        names = [type(w.message).__name__ for w in recwarn]
        assert "LogfireNotConfiguredWarning" not in names
