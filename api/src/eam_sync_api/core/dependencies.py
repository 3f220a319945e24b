#!/usr/bin/env python3

import logging
import os

from minio import Minio

from .config import sync_config

logger = logging.getLogger(__name__)


def get_s3_client():
    """Get MinIO/S3 client"""
    endpoint = os.getenv("MINIO_ENDPOINT", "localhost:9000")
    access_key = os.getenv("MINIO_ACCESS_KEY", "minio")
    secret_key = os.getenv("MINIO_SECRET_KEY", "minio123")
    secure = os.getenv("MINIO_SECURE", "false").lower() == "true"

    # Remove http:// or https:// from endpoint if present
    if endpoint.startswith("http://"):
        endpoint = endpoint[7:]
        secure = False
    elif endpoint.startswith("https://"):
        endpoint = endpoint[8:]
        secure = True

    return Minio(
        endpoint,
        access_key=access_key,
        secret_key=secret_key,
        secure=secure
    )


# Global instances
_neo4j_client = None
_status_tracker = None
_log_service = None
_sync_engine = None


def get_neo4j_client():
    """Get or create global Neo4j client instance"""
    global _neo4j_client
    if _neo4j_client is None:
        from ..clients.neo4j_client import Neo4jClient
        _neo4j_client = Neo4jClient()

    return _neo4j_client


def get_status_tracker():
    """Get or create the global run status tracker"""
    global _status_tracker
    if _status_tracker is None:
        from ..services.status_tracker import RunStatusTracker
        _status_tracker = RunStatusTracker(
            history_limit=sync_config.HISTORY_LIMIT,
            message_max=sync_config.HISTORY_MESSAGE_MAX,
        )
    return _status_tracker


def get_log_service():
    """Get or create the global live log broadcaster"""
    global _log_service
    if _log_service is None:
        from ..services.sync_log_service import SyncLogService
        _log_service = SyncLogService(queue_size=sync_config.LOG_QUEUE_SIZE)
    return _log_service


def get_mapping_store():
    from ..services.mapping_store import MappingStore
    return MappingStore(get_s3_client(), sync_config.BUCKET)


def get_source_registry():
    from ..services.source_registry import SourceRegistry
    return SourceRegistry(get_s3_client(), sync_config.BUCKET)


def open_source_reader(source_id: str):
    """Open the relational reader for a registered source"""
    from ..clients.sql_client import SqlSourceReader
    from ..services.domain.sync.errors import FatalConnectionError

    source = get_source_registry().find(source_id)
    if source is None:
        raise FatalConnectionError(f"Source {source_id} is not registered")
    return SqlSourceReader.connect(source.url)


def open_graph_session():
    """Open a Neo4j session after checking the server is reachable"""
    client = get_neo4j_client()
    client.verify_connectivity()
    return client.session()


def get_sync_engine():
    """Get or create the global sync engine"""
    global _sync_engine
    if _sync_engine is None:
        from ..services.domain.sync.engine import SyncEngine
        _sync_engine = SyncEngine(
            mapping_loader=lambda source_id: get_mapping_store().load(source_id),
            reader_factory=open_source_reader,
            graph_factory=open_graph_session,
            tracker=get_status_tracker(),
            log_service=get_log_service(),
            batch_size=sync_config.BATCH_SIZE,
            max_workers=sync_config.MAX_CONCURRENT_RUNS,
        )
    return _sync_engine


def cleanup_connections():
    """Clean up global connections on application shutdown"""
    global _neo4j_client, _sync_engine
    if _sync_engine is not None:
        _sync_engine.shutdown(wait=False)
        _sync_engine = None
    if _neo4j_client is not None:
        _neo4j_client.close()
        _neo4j_client = None
