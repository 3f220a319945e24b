#!/usr/bin/env python3
"""
Sync Log Service

Broadcasts run log lines to live subscribers (Server-Sent Events).

Runs execute on worker threads while subscribers are async generators
served by the application's event loop, so every subscriber owns an
asyncio.Queue and delivery is scheduled onto the subscriber's loop.
Delivery is best-effort and at-most-once: a subscriber whose queue is full
or whose loop has gone away is dropped.
"""

import asyncio
import logging
import threading
from collections.abc import AsyncIterator
from typing import Optional

logger = logging.getLogger(__name__)

LEVELS = ("INFO", "WARN", "ERROR")


class LogSubscription:
    """One live subscriber to a source's log stream."""

    def __init__(self, service: "SyncLogService", source_id: str, loop: asyncio.AbstractEventLoop, maxsize: int):
        self.service = service
        self.source_id = source_id
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def offer(self, line: str) -> None:
        """Runs on the subscriber's loop."""
        if self.closed:
            return
        try:
            self.queue.put_nowait(line)
        except asyncio.QueueFull:
            logger.warning(f"Log subscriber for {self.source_id} is not keeping up; dropping it")
            self.service.unsubscribe(self)

    def close(self) -> None:
        self.closed = True

    async def lines(self, keepalive_seconds: Optional[float] = None) -> AsyncIterator[Optional[str]]:
        """Yield log lines until the subscription is closed.

        None is yielded when keepalive_seconds pass without a line, so the
        caller can emit a keep-alive.
        """
        try:
            while not self.closed:
                try:
                    if keepalive_seconds:
                        line = await asyncio.wait_for(self.queue.get(), timeout=keepalive_seconds)
                    else:
                        line = await self.queue.get()
                except asyncio.TimeoutError:
                    yield None
                    continue
                yield line
        finally:
            self.service.unsubscribe(self)


class SyncLogService:
    """Fan-out of run log lines to subscribers, keyed by source id."""

    def __init__(self, queue_size: int = 1000):
        self.queue_size = queue_size
        self._subscribers: dict[str, list[LogSubscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, source_id: str) -> LogSubscription:
        """Register a subscriber on the running event loop."""
        loop = asyncio.get_running_loop()
        subscription = LogSubscription(self, source_id, loop, self.queue_size)
        with self._lock:
            self._subscribers.setdefault(source_id, []).append(subscription)
        logger.info(f"Log subscriber added for source {source_id}")
        return subscription

    def unsubscribe(self, subscription: LogSubscription) -> None:
        subscription.close()
        with self._lock:
            subscribers = self._subscribers.get(subscription.source_id, [])
            if subscription in subscribers:
                subscribers.remove(subscription)
                logger.info(f"Log subscriber removed for source {subscription.source_id}")
            if not subscribers:
                self._subscribers.pop(subscription.source_id, None)

    def subscriber_count(self, source_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(source_id, []))

    def broadcast(self, source_id: str, level: str, message: str) -> None:
        """Send "LEVEL: message" to every subscriber of source_id."""
        line = f"{level}: {message}"
        with self._lock:
            subscribers = list(self._subscribers.get(source_id, []))

        for subscription in subscribers:
            try:
                subscription.loop.call_soon_threadsafe(subscription.offer, line)
            except RuntimeError:
                # Subscriber's event loop is closed
                self.unsubscribe(subscription)


class SyncRunLogger:
    """Run-scoped logger writing to the application log and the live stream.

    DEBUG lines go to the application log only. Warning and error counts are
    kept for the run summary.
    """

    def __init__(self, source_id: str, broadcaster: Optional[SyncLogService] = None, name: str = None):
        self.source_id = source_id
        self.broadcaster = broadcaster
        self.stage = None
        self.warnings = 0
        self.errors = 0
        self._logger = logging.getLogger(name or "eam_sync_api.sync")

    def _extra(self) -> dict:
        return {"source_id": self.source_id, "stage": self.stage}

    def _emit(self, level: str, log_level: int, message: str) -> None:
        self._logger.log(log_level, f"[Sync:{self.source_id}] {message}", extra=self._extra())
        if self.broadcaster is not None:
            self.broadcaster.broadcast(self.source_id, level, message)

    def debug(self, message: str) -> None:
        self._logger.debug(f"[Sync:{self.source_id}] {message}", extra=self._extra())

    def info(self, message: str) -> None:
        self._emit("INFO", logging.INFO, message)

    def warn(self, message: str) -> None:
        self.warnings += 1
        self._emit("WARN", logging.WARNING, message)

    def error(self, message: str) -> None:
        self.errors += 1
        self._emit("ERROR", logging.ERROR, message)
