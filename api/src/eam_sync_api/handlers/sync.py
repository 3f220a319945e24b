#!/usr/bin/env python3

import logging
from collections.abc import AsyncIterator

from fastapi import HTTPException
from minio.error import S3Error

from ..models.models import MappingSaveResponse, SyncRunModel, ToggleRequest, ToggleResponse, TriggerResponse
from ..services.domain.sync.errors import ConfigError
from ..services.mapping_store import MappingStore
from ..services.source_registry import SourceNotFoundError, SourceRegistry
from ..services.status_tracker import RunStatusTracker
from ..services.sync_log_service import LogSubscription, SyncLogService

logger = logging.getLogger(__name__)


def handle_get_mapping(source_id: str, store: MappingStore) -> str:
    """Return the source's mapping YAML (default template when none is saved)"""
    try:
        return store.load(source_id)
    except S3Error as e:
        logger.error(f"Failed to load mapping for source {source_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to load mapping: {str(e)}") from e


def handle_save_mapping(source_id: str, text: str, store: MappingStore) -> MappingSaveResponse:
    """Validate and save a mapping document"""
    try:
        spec = store.save(source_id, text)
    except ConfigError as e:
        logger.warning(f"Rejected invalid mapping for source {source_id}: {e}")
        raise HTTPException(status_code=400, detail=f"Invalid mapping: {str(e)}") from e
    except S3Error as e:
        logger.error(f"Failed to save mapping for source {source_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to save mapping: {str(e)}") from e

    return MappingSaveResponse(
        source_id=source_id,
        status="saved",
        node_types=list(spec.node_types),
        relationship_types=list(spec.relationship_types),
    )


def handle_trigger(source_id: str, engine, registry: SourceRegistry) -> TriggerResponse:
    """Start a sync run in the background"""
    try:
        registered = registry.exists(source_id)
    except S3Error as e:
        logger.error(f"Failed to read source registry: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to read source registry: {str(e)}") from e

    if not registered:
        raise HTTPException(status_code=404, detail=f"Unknown source: {source_id}")

    future = engine.trigger(source_id)
    if future is None:
        raise HTTPException(status_code=409, detail=f"Sync already in progress for source {source_id}")

    logger.info(f"Sync triggered for source {source_id}")
    return TriggerResponse(
        source_id=source_id,
        status="started",
        message=f"Synchronization started for source {source_id}",
    )


def handle_get_status(source_id: str, tracker: RunStatusTracker) -> SyncRunModel:
    return SyncRunModel.from_run(tracker.get(source_id))


def handle_toggle(source_id: str, request: ToggleRequest, registry: SourceRegistry) -> ToggleResponse:
    """Enable or disable scheduled sync for a source"""
    if request.enabled is None:
        raise HTTPException(status_code=400, detail="'enabled' is required")

    try:
        source = registry.set_sync_enabled(source_id, request.enabled)
    except SourceNotFoundError as e:
        raise HTTPException(status_code=404, detail=f"Unknown source: {source_id}") from e
    except S3Error as e:
        logger.error(f"Failed to update source {source_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to update source: {str(e)}") from e

    return ToggleResponse(source_id=source.id, sync_enabled=source.sync_enabled)


def open_log_stream(source_id: str, log_service: SyncLogService) -> LogSubscription:
    """Register a live log subscriber; must be called on the event loop"""
    return log_service.subscribe(source_id)


def format_sse_event(message: str) -> str:
    """Format one message as an SSE event, one data: field per line"""
    parts = message.splitlines() or [""]
    return "".join(f"data: {part}\n" for part in parts) + "\n"


async def stream_log_events(subscription: LogSubscription, keepalive_seconds: float) -> AsyncIterator[str]:
    """Format a subscription as Server-Sent Events"""
    yield format_sse_event(f"INFO: Subscribed to sync logs for {subscription.source_id}")
    lines = subscription.lines(keepalive_seconds)
    try:
        async for line in lines:
            if line is None:
                yield ": keepalive\n\n"
                continue
            yield format_sse_event(line)
    finally:
        await lines.aclose()
