#!/usr/bin/env python3
"""
Run Status Tracker

In-memory run state and capped history per source identifier.

State machine per source: IDLE -> IN_PROGRESS -> {SUCCESS, FAIL}. A source
that never ran reports an IDLE snapshot. State lives for the process
lifetime only; a restart clears it.

Each source has its own lock, so writers for one source never block
another source. Readers always receive copies.
"""

import copy
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class SyncStatus(str, Enum):
    IDLE = "IDLE"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    FAIL = "FAIL"


@dataclass(frozen=True)
class SyncEvent:
    timestamp: datetime
    status: SyncStatus
    message: str
    duration_ms: Optional[int] = None


@dataclass
class SyncRun:
    source_id: str
    status: SyncStatus = SyncStatus.IDLE
    last_run_at: Optional[datetime] = None
    last_duration_ms: Optional[int] = None
    stage: Optional[str] = None
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    history: list[SyncEvent] = field(default_factory=list)


def truncate_message(message: str, limit: int) -> str:
    """Cap a history message at limit characters, ending with "..." when cut."""
    message = message or ""
    if len(message) <= limit:
        return message
    return message[:limit - 3] + "..."


class RunStatusTracker:
    """Thread-safe store of SyncRun state keyed by source id."""

    def __init__(self, history_limit: int = 20, message_max: int = 200):
        self.history_limit = history_limit
        self.message_max = message_max
        self._runs: dict[str, SyncRun] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, source_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(source_id)
            if lock is None:
                lock = self._locks[source_id] = threading.Lock()
            return lock

    def _run_for(self, source_id: str) -> SyncRun:
        run = self._runs.get(source_id)
        if run is None:
            run = self._runs[source_id] = SyncRun(source_id=source_id)
        return run

    def _record(self, run: SyncRun, status: SyncStatus, message: str, duration_ms: Optional[int]) -> None:
        event = SyncEvent(
            timestamp=datetime.now(timezone.utc),
            status=status,
            message=truncate_message(message, self.message_max),
            duration_ms=duration_ms,
        )
        run.history.insert(0, event)
        del run.history[self.history_limit:]

    def begin(self, source_id: str) -> bool:
        """Move a source to IN_PROGRESS.

        Returns:
            False if a run for the source is already in progress, True otherwise
        """
        with self._lock_for(source_id):
            run = self._run_for(source_id)
            if run.status == SyncStatus.IN_PROGRESS:
                return False
            run.status = SyncStatus.IN_PROGRESS
            run.last_run_at = datetime.now(timezone.utc)
            run.last_duration_ms = None
            run.stage = None
            run.failed_stage = None
            run.error = None
            self._record(run, SyncStatus.IN_PROGRESS, "Synchronization started.", None)
            logger.info(f"Sync run started for source {source_id}")
            return True

    def set_stage(self, source_id: str, stage: str) -> None:
        with self._lock_for(source_id):
            self._run_for(source_id).stage = stage

    def complete(
        self,
        source_id: str,
        status: SyncStatus,
        message: str,
        duration_ms: Optional[int] = None,
        stage: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        """Set a terminal status and prepend a history event."""
        if status not in (SyncStatus.SUCCESS, SyncStatus.FAIL):
            raise ValueError(f"Not a terminal status: {status}")

        with self._lock_for(source_id):
            run = self._run_for(source_id)
            run.status = status
            run.last_duration_ms = duration_ms
            if status == SyncStatus.FAIL:
                run.failed_stage = stage or run.stage
                run.error = error
            run.stage = None
            self._record(run, status, message, duration_ms)
            logger.info(f"Sync run for source {source_id} finished with {status.value}")

    def fail(self, source_id: str, stage: str, error: str, duration_ms: Optional[int] = None) -> None:
        self.complete(
            source_id,
            SyncStatus.FAIL,
            f"Failed during step: {stage}. Error: {error}",
            duration_ms,
            stage=stage,
            error=error,
        )

    def get(self, source_id: str) -> SyncRun:
        """Return a snapshot of the source's run state (IDLE if it never ran)."""
        # Locks are only created by writers, so unknown ids leave no trace
        with self._registry_lock:
            lock = self._locks.get(source_id)
        if lock is None:
            return SyncRun(source_id=source_id)

        with lock:
            run = self._runs.get(source_id)
            if run is None:
                return SyncRun(source_id=source_id)
            return copy.deepcopy(run)

    def is_running(self, source_id: str) -> bool:
        return self.get(source_id).status == SyncStatus.IN_PROGRESS
