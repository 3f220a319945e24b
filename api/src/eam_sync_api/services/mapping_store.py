#!/usr/bin/env python3
"""
Mapping Store

Persists one YAML mapping configuration per source in MinIO under
mappings/{source_id}/mapping.yaml. A source without a saved mapping gets
the built-in default template.
"""

import logging

from minio import Minio

from ..clients.s3_client import get_text_content, upload_text
from .domain.sync.mapping import DEFAULT_MAPPING_TEMPLATE, MappingSpec, parse_mapping

logger = logging.getLogger(__name__)


def mapping_object_name(source_id: str) -> str:
    return f"mappings/{source_id}/mapping.yaml"


class MappingStore:
    """Config store for mapping documents."""

    def __init__(self, s3: Minio, bucket: str):
        self.s3 = s3
        self.bucket = bucket

    def load(self, source_id: str) -> str:
        """Return the saved mapping text, or the default template when absent."""
        content = get_text_content(self.s3, self.bucket, mapping_object_name(source_id))
        if content is None or not content.strip():
            logger.info(f"No mapping saved for source {source_id}, using default template")
            return DEFAULT_MAPPING_TEMPLATE
        return content

    def save(self, source_id: str, text: str) -> MappingSpec:
        """Validate and save a mapping document.

        Returns:
            The parsed mapping

        Raises:
            ConfigError: If the document is not a valid mapping (nothing is saved)
            S3Error: If the upload fails
        """
        spec = parse_mapping(text)
        upload_text(self.s3, self.bucket, mapping_object_name(source_id), text, "application/x-yaml")
        logger.info(f"Saved mapping for source {source_id}")
        return spec
