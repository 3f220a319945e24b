#!/usr/bin/env python3

import logging

from fastapi import HTTPException
from minio.error import S3Error

from ..models.models import SourceConfig, SourceSummary, SourceUpdate
from ..services.source_registry import SourceRegistry

logger = logging.getLogger(__name__)


def handle_list_sources(registry: SourceRegistry) -> list[SourceSummary]:
    """List registered sources (connection URLs are not returned)"""
    try:
        sources = registry.list_sources()
    except S3Error as e:
        logger.error(f"Failed to read source registry: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to read source registry: {str(e)}") from e

    return [SourceSummary(id=s.id, name=s.name, sync_enabled=s.sync_enabled) for s in sources]


def handle_put_source(source_id: str, request: SourceUpdate, registry: SourceRegistry) -> SourceSummary:
    """Register or replace a relational source"""
    if not request.url.strip():
        raise HTTPException(status_code=400, detail="'url' must not be empty")

    source = SourceConfig(
        id=source_id,
        name=request.name or source_id,
        url=request.url.strip(),
        sync_enabled=request.sync_enabled,
    )
    try:
        registry.put(source)
    except S3Error as e:
        logger.error(f"Failed to register source {source_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to register source: {str(e)}") from e

    return SourceSummary(id=source.id, name=source.name, sync_enabled=source.sync_enabled)
