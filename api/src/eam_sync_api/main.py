#!/usr/bin/env python3

import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, StreamingResponse

from .core.auth import verify_token
from .core.config import sync_config
from .core.dependencies import (
    cleanup_connections,
    get_log_service,
    get_mapping_store,
    get_neo4j_client,
    get_s3_client,
    get_source_registry,
    get_status_tracker,
    get_sync_engine,
)
from .core.env_utils import getenv_list
from .core.logging import setup_logging
from .models.models import SourceUpdate, ToggleRequest

logger = logging.getLogger(__name__)

# Application start time for uptime calculation
_app_start_time = time.time()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    setup_logging(sync_config.LOG_LEVEL)
    logger.info("Starting EAM sync service")

    await startup_tasks()

    scheduler = None
    if sync_config.SCHEDULER_ENABLED:
        from .services.scheduler import SyncScheduler
        scheduler = SyncScheduler(
            get_sync_engine(),
            get_source_registry(),
            interval_seconds=sync_config.SCHEDULE_INTERVAL_SECONDS,
        )
        scheduler.start()
    else:
        logger.info("Scheduled sync disabled (SYNC_SCHEDULER_ENABLED=false)")

    yield

    # Shutdown
    logger.info("Shutting down EAM sync service")
    if scheduler is not None:
        await scheduler.stop()
    cleanup_connections()


async def startup_tasks():
    """Initialize external services"""
    try:
        # Create MinIO bucket for mappings and the source registry
        from .clients.s3_client import create_buckets
        create_buckets(get_s3_client(), [sync_config.BUCKET])

        logger.info("Startup tasks completed successfully")

    except Exception as e:
        logger.error(f"Startup tasks failed: {e}")
        raise


app = FastAPI(
    title="EAM Graph Sync API",
    description="API for synchronizing EAM asset hierarchies into Neo4j",
    version=os.getenv("APP_VERSION", "unknown"),
    lifespan=lifespan
)

# CORS middleware
allowed_origins = getenv_list("CORS_ORIGINS", ["http://localhost:3000"])
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Add version header middleware
@app.middleware("http")
async def add_version_header(request, call_next):
    """Add version information to response headers"""
    response = await call_next(request)
    response.headers["X-API-Version"] = os.getenv("APP_VERSION", "unknown")
    return response


@app.get("/healthz")
async def health_check():
    """Liveness probe - checks if application is alive and can serve requests"""
    current_time = time.time()
    return {
        "status": "healthy",
        "timestamp": current_time,
        "uptime": current_time - _app_start_time,
        "api_version": os.getenv("APP_VERSION", "unknown"),
        "git_commit": os.getenv("GIT_COMMIT", "unknown"),
        "build_date": os.getenv("BUILD_DATE", "unknown"),
    }


@app.get("/readyz")
async def readiness_check():
    """Readiness probe - lightweight check for orchestrators (K8s, Docker)"""
    try:
        # Quick MinIO connectivity test
        s3_client = get_s3_client()
        list(s3_client.list_buckets())

        # Quick Neo4j connectivity test
        get_neo4j_client().verify_connectivity()

        return {"status": "ready"}

    except Exception as e:
        logger.warning(f"Readiness check failed: {e}")
        raise HTTPException(status_code=503, detail={"status": "not_ready"}) from e


# Sync Routes

@app.get("/api/sync/mapping/{source_id}", response_class=PlainTextResponse)
async def get_sync_mapping(
    source_id: str,
    token: str = Depends(verify_token),
    store=Depends(get_mapping_store)
):
    """Get the mapping YAML for a source (default template when none is saved)"""
    from .handlers.sync import handle_get_mapping
    return PlainTextResponse(handle_get_mapping(source_id, store), media_type="application/x-yaml")


@app.post("/api/sync/mapping/{source_id}")
async def save_sync_mapping(
    source_id: str,
    request: Request,
    token: str = Depends(verify_token),
    store=Depends(get_mapping_store)
):
    """Validate and save a mapping YAML document (raw request body)"""
    from .handlers.sync import handle_save_mapping

    body = await request.body()
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise HTTPException(status_code=400, detail="Mapping must be UTF-8 text") from e

    return handle_save_mapping(source_id, text, store)


@app.post("/api/sync/trigger/{source_id}", status_code=202)
async def trigger_sync(
    source_id: str,
    token: str = Depends(verify_token),
    engine=Depends(get_sync_engine),
    registry=Depends(get_source_registry)
):
    """Start a sync run for a source; returns immediately"""
    from .handlers.sync import handle_trigger
    return handle_trigger(source_id, engine, registry)


@app.get("/api/sync/status/{source_id}")
async def get_sync_status(
    source_id: str,
    token: str = Depends(verify_token),
    tracker=Depends(get_status_tracker)
):
    """Get the run status and history of a source"""
    from .handlers.sync import handle_get_status
    return handle_get_status(source_id, tracker)


@app.get("/api/sync/logs/subscribe/{source_id}")
async def subscribe_sync_logs(
    source_id: str,
    token: str = Depends(verify_token),
    log_service=Depends(get_log_service)
):
    """Stream live run logs as Server-Sent Events"""
    from .handlers.sync import open_log_stream, stream_log_events

    subscription = open_log_stream(source_id, log_service)
    return StreamingResponse(
        stream_log_events(subscription, sync_config.LOG_KEEPALIVE_SECONDS),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@app.post("/api/sync/toggle/{source_id}")
async def toggle_sync(
    source_id: str,
    request: ToggleRequest,
    token: str = Depends(verify_token),
    registry=Depends(get_source_registry)
):
    """Enable or disable scheduled sync for a source"""
    from .handlers.sync import handle_toggle
    return handle_toggle(source_id, request, registry)


# Source Routes

@app.get("/api/sources")
async def list_sources(
    token: str = Depends(verify_token),
    registry=Depends(get_source_registry)
):
    """List registered relational sources"""
    from .handlers.sources import handle_list_sources
    return handle_list_sources(registry)


@app.put("/api/sources/{source_id}")
async def put_source(
    source_id: str,
    request: SourceUpdate,
    token: str = Depends(verify_token),
    registry=Depends(get_source_registry)
):
    """Register or replace a relational source"""
    from .handlers.sources import handle_put_source
    return handle_put_source(source_id, request, registry)


# Admin Routes

@app.get("/api/admin/neo4j/stats")
async def get_neo4j_stats(
    token: str = Depends(verify_token),
    client=Depends(get_neo4j_client)
):
    """Get Neo4j database statistics"""
    from .handlers.admin import handle_neo4j_stats
    return handle_neo4j_stats(client)


if __name__ == "__main__":
    import uvicorn
    host = os.getenv("API_HOST", "0.0.0.0")  # nosec B104
    port = int(os.getenv("API_PORT", "8000"))
    uvicorn.run(app, host=host, port=port)
