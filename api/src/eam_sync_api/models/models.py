#!/usr/bin/env python3

from datetime import datetime

from pydantic import BaseModel, Field

from ..services.status_tracker import SyncRun

# Pydantic Models


class SourceConfig(BaseModel):
    """A registered relational source."""

    id: str
    name: str
    url: str  # SQLAlchemy database URL
    sync_enabled: bool = False  # Included in scheduled runs


class SourceUpdate(BaseModel):
    name: str | None = None
    url: str
    sync_enabled: bool = False


class SourceSummary(BaseModel):
    """A registered source without its connection URL."""

    id: str
    name: str
    sync_enabled: bool


class ToggleRequest(BaseModel):
    enabled: bool | None = None


class ToggleResponse(BaseModel):
    source_id: str
    sync_enabled: bool


class TriggerResponse(BaseModel):
    source_id: str
    status: str  # 'started'
    message: str


class MappingSaveResponse(BaseModel):
    source_id: str
    status: str  # 'saved'
    node_types: list[str] = []
    relationship_types: list[str] = []


class SyncEventModel(BaseModel):
    timestamp: datetime
    status: str  # 'IN_PROGRESS', 'SUCCESS', 'FAIL'
    message: str
    duration_ms: int | None = None


class SyncRunModel(BaseModel):
    source_id: str
    status: str  # 'IDLE', 'IN_PROGRESS', 'SUCCESS', 'FAIL'
    last_run_at: datetime | None = None
    last_duration_ms: int | None = None
    stage: str | None = None  # Active stage while in progress
    failed_stage: str | None = None  # Stage active when the last run failed
    error: str | None = None
    history: list[SyncEventModel] = Field(default_factory=list)  # Newest first

    @classmethod
    def from_run(cls, run: SyncRun) -> "SyncRunModel":
        return cls(
            source_id=run.source_id,
            status=run.status.value,
            last_run_at=run.last_run_at,
            last_duration_ms=run.last_duration_ms,
            stage=run.stage,
            failed_stage=run.failed_stage,
            error=run.error,
            history=[
                SyncEventModel(
                    timestamp=event.timestamp,
                    status=event.status.value,
                    message=event.message,
                    duration_ms=event.duration_ms,
                )
                for event in run.history
            ],
        )


class GraphStats(BaseModel):
    nodeCount: int
    relationshipCount: int
