#!/usr/bin/env python3
"""Tests for live log broadcasting and the run-scoped logger."""

import asyncio
import logging
import threading

import pytest

from eam_sync_api.services.sync_log_service import SyncLogService, SyncRunLogger


async def _collect(subscription, count, timeout=5):
    lines = []
    stream = subscription.lines()

    async def read():
        async for line in stream:
            lines.append(line)
            if len(lines) == count:
                break

    try:
        await asyncio.wait_for(read(), timeout)
    finally:
        await stream.aclose()
    return lines


@pytest.mark.unit
class TestSyncLogService:
    """Test suite for SyncLogService."""

    def test_broadcast_reaches_subscribers_of_that_source(self):
        service = SyncLogService()

        async def scenario():
            plant = service.subscribe("plant")
            other = service.subscribe("warehouse")
            service.broadcast("plant", "INFO", "Step: Walking hierarchy")
            service.broadcast("plant", "WARN", "Type code 'ZZ' not found")
            lines = await _collect(plant, 2)
            return lines, other.queue.qsize()

        lines, other_pending = asyncio.run(scenario())

        assert lines == ["INFO: Step: Walking hierarchy", "WARN: Type code 'ZZ' not found"]
        assert other_pending == 0

    def test_broadcast_from_worker_thread(self):
        service = SyncLogService()

        async def scenario():
            subscription = service.subscribe("plant")
            worker = threading.Thread(target=service.broadcast, args=("plant", "ERROR", "Batch failed"))
            worker.start()
            lines = await _collect(subscription, 1)
            worker.join()
            return lines

        assert asyncio.run(scenario()) == ["ERROR: Batch failed"]

    def test_closing_stream_unsubscribes(self):
        service = SyncLogService()

        async def scenario():
            subscription = service.subscribe("plant")
            service.broadcast("plant", "INFO", "one")
            await _collect(subscription, 1)
            return service.subscriber_count("plant")

        assert asyncio.run(scenario()) == 0

    def test_slow_subscriber_is_dropped(self):
        service = SyncLogService(queue_size=2)

        async def scenario():
            subscription = service.subscribe("plant")
            for i in range(3):
                service.broadcast("plant", "INFO", f"line {i}")
            # Let the scheduled deliveries run
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            return subscription

        subscription = asyncio.run(scenario())

        assert subscription.closed is True
        assert service.subscriber_count("plant") == 0

    def test_subscriber_on_closed_loop_is_dropped(self):
        service = SyncLogService()

        async def scenario():
            return service.subscribe("plant")

        asyncio.run(scenario())
        service.broadcast("plant", "INFO", "after shutdown")

        assert service.subscriber_count("plant") == 0

    def test_keepalive_yields_none(self):
        service = SyncLogService()

        async def scenario():
            subscription = service.subscribe("plant")
            stream = subscription.lines(keepalive_seconds=0.01)
            first = await stream.__anext__()
            await stream.aclose()
            return first

        assert asyncio.run(scenario()) is None
        assert service.subscriber_count("plant") == 0


@pytest.mark.unit
class TestSyncRunLogger:
    """Test suite for SyncRunLogger."""

    def test_counts_and_broadcasts(self):
        sent = []

        class Broadcaster:
            def broadcast(self, source_id, level, message):
                sent.append((source_id, level, message))

        log = SyncRunLogger("plant", Broadcaster())
        log.info("started")
        log.warn("null key")
        log.error("failed")
        log.debug("detail")

        assert log.warnings == 1
        assert log.errors == 1
        assert sent == [("plant", "INFO", "started"), ("plant", "WARN", "null key"), ("plant", "ERROR", "failed")]

    def test_records_carry_source_and_stage(self, caplog):
        log = SyncRunLogger("plant")
        log.stage = "Walking hierarchy"

        with caplog.at_level(logging.INFO, logger="eam_sync_api.sync"):
            log.warn("Type code 'ZZ' not found")

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.source_id == "plant"
        assert record.stage == "Walking hierarchy"
        assert "[Sync:plant] Type code 'ZZ' not found" in record.getMessage()
