#!/usr/bin/env python3
"""
Sync Scheduler

Background asyncio task that triggers a run for every source with
scheduled sync enabled, once per interval. Runs themselves execute on the
engine's thread pool, so a tick never blocks the event loop for longer than
reading the source registry.
"""

import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class SyncScheduler:
    def __init__(self, engine, registry, interval_seconds: float = 3600):
        self.engine = engine
        self.registry = registry
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="sync-scheduler")
        logger.info(f"Sync scheduler started (interval {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Sync scheduler stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await asyncio.to_thread(self.tick)
            except Exception as e:
                logger.error(f"Scheduled sync tick failed: {e}")

    def tick(self) -> list[str]:
        """Trigger every enabled source once.

        Returns:
            Ids of the sources for which a run was started
        """
        started = []
        for source in self.registry.list_sources():
            if not source.sync_enabled:
                logger.info(f"Scheduled sync disabled for source {source.id}, skipping")
                continue
            if self.engine.trigger(source.id) is None:
                logger.info(f"Sync already in progress for source {source.id}, skipping scheduled run")
                continue
            logger.info(f"Scheduled sync started for source {source.id}")
            started.append(source.id)
        return started
