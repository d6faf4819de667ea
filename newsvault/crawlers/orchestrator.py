"""Periodic driver: runs every registered crawler once per interval.

State machine::

    IDLE → TICKING → IDLE → ... → STOPPED

Ticks are scheduled on a fixed grid (``start, start + interval, ...``) and
the work of each tick runs in a background task.  If a tick comes due while
the previous one is still working, it is skipped rather than overlapped.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Dict, Optional

import logfire

from newsvault.config import settings
from newsvault.crawlers.base import CrawlReport
from newsvault.crawlers.registry import CrawlerRegistry
from newsvault.db.store import ArchiveStore


class OrchestratorState(Enum):
    IDLE = "idle"
    TICKING = "ticking"
    STOPPED = "stopped"


class CrawlOrchestrator:
    def __init__(
        self,
        registry: CrawlerRegistry,
        store: ArchiveStore,
        interval_seconds: Optional[float] = None,
        run_immediately: bool = True,
    ) -> None:
        interval = settings.crawl_interval_seconds if interval_seconds is None else interval_seconds
        if interval <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval}")

        self._registry = registry
        self._store = store
        self._interval = float(interval)
        self._run_immediately = run_immediately

        self._state = OrchestratorState.IDLE
        self._stop_event = asyncio.Event()
        self._busy = False
        self._task: Optional[asyncio.Task] = None
        self.ticks = 0
        self.skipped_ticks = 0
        self.last_reports: Dict[str, CrawlReport] = {}

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def interval_seconds(self) -> float:
        return self._interval

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def stop(self) -> None:
        """Ask :meth:`run` to exit.  An in-flight tick is allowed to finish."""
        self._stop_event.set()
        if not self._busy:
            self._state = OrchestratorState.STOPPED

    async def run_once(self) -> bool:
        """Run one guarded tick in the foreground.

        Returns:
            ``False`` if a tick was already running and this one was skipped.
        """
        if self._busy:
            self._skip()
            return False
        await self._tick()
        return True

    async def run(self) -> None:
        """Tick until :meth:`stop` is called or the task is cancelled."""
        loop = asyncio.get_running_loop()
        next_at = loop.time() + (0 if self._run_immediately else self._interval)
        logfire.info("Crawl orchestrator started", interval_seconds=self._interval)

        try:
            while not await self._wait_until(next_at):
                if self._busy:
                    self._skip()
                else:
                    self._busy = True
                    self._task = asyncio.create_task(self._tick())

                next_at += self._interval
                now = loop.time()
                while next_at <= now:
                    next_at += self._interval

            if self._task is not None:
                await self._task
        except asyncio.CancelledError:
            task = self._task
            if task is not None and not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
            raise
        finally:
            self._state = OrchestratorState.STOPPED
            logfire.info(
                "Crawl orchestrator stopped",
                ticks=self.ticks,
                skipped_ticks=self.skipped_ticks,
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _wait_until(self, deadline: float) -> bool:
        """Sleep until *deadline*; return ``True`` if stop was requested."""
        if self._stop_event.is_set():
            return True
        delay = deadline - asyncio.get_running_loop().time()
        if delay <= 0:
            return False
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
        return self._stop_event.is_set()

    def _skip(self) -> None:
        self.skipped_ticks += 1
        logfire.warning(
            "Previous crawl tick still running, skipping this one",
            skipped_ticks=self.skipped_ticks,
        )

    async def _tick(self) -> None:
        self._busy = True
        self._state = OrchestratorState.TICKING
        try:
            with logfire.span("crawl tick {tick}", tick=self.ticks + 1):
                reports = await self._registry.run_all(self._store)
            self.last_reports = reports
            for report in reports.values():
                logfire.info("Crawl report", report=str(report))
        except Exception as exc:
            logfire.error("Crawl tick failed", error=str(exc))
        finally:
            self.ticks += 1
            self._busy = False
            self._state = (
                OrchestratorState.STOPPED
                if self._stop_event.is_set()
                else OrchestratorState.IDLE
            )
