#!/usr/bin/env python3
"""
Source Registry

The registered relational sources, kept as a single JSON document
(sources.json) in MinIO. Each entry holds a display name, a SQLAlchemy URL
and whether the source takes part in scheduled runs.
"""

import logging
import threading
from typing import Optional

from minio import Minio

from ..clients.s3_client import get_json_content, put_json_content
from ..models.models import SourceConfig

logger = logging.getLogger(__name__)

REGISTRY_OBJECT = "sources.json"


def _to_source(source_id: str, entry: dict) -> SourceConfig:
    return SourceConfig(id=source_id, **{k: v for k, v in entry.items() if k != "id"})


class SourceNotFoundError(KeyError):
    """Raised when a source id is not registered."""
    pass


class SourceRegistry:
    def __init__(self, s3: Minio, bucket: str):
        self.s3 = s3
        self.bucket = bucket
        self._lock = threading.Lock()

    def _read(self) -> dict[str, dict]:
        data = get_json_content(self.s3, self.bucket, REGISTRY_OBJECT)
        if not isinstance(data, dict):
            return {}
        return data

    def _write(self, data: dict[str, dict]) -> None:
        put_json_content(self.s3, self.bucket, REGISTRY_OBJECT, data)

    def list_sources(self) -> list[SourceConfig]:
        return [_to_source(source_id, entry) for source_id, entry in sorted(self._read().items())]

    def find(self, source_id: str) -> Optional[SourceConfig]:
        entry = self._read().get(source_id)
        if entry is None:
            return None
        return _to_source(source_id, entry)

    def get(self, source_id: str) -> SourceConfig:
        source = self.find(source_id)
        if source is None:
            raise SourceNotFoundError(source_id)
        return source

    def exists(self, source_id: str) -> bool:
        return self.find(source_id) is not None

    def put(self, source: SourceConfig) -> SourceConfig:
        """Register or replace a source."""
        with self._lock:
            data = self._read()
            data[source.id] = source.model_dump(exclude={"id"})
            self._write(data)
        logger.info(f"Registered source {source.id} (sync_enabled={source.sync_enabled})")
        return source

    def set_sync_enabled(self, source_id: str, enabled: bool) -> SourceConfig:
        """Enable or disable scheduled sync for a source.

        Raises:
            SourceNotFoundError: If the source is not registered
        """
        with self._lock:
            data = self._read()
            entry = data.get(source_id)
            if entry is None:
                raise SourceNotFoundError(source_id)
            entry["sync_enabled"] = bool(enabled)
            self._write(data)
        logger.info(f"Scheduled sync {'enabled' if enabled else 'disabled'} for source {source_id}")
        return _to_source(source_id, entry)

    def enabled_sources(self) -> list[SourceConfig]:
        return [source for source in self.list_sources() if source.sync_enabled]
