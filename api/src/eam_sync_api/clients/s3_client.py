#!/usr/bin/env python3
"""
S3/MinIO Object Storage Client

A low-level client wrapper for MinIO object storage operations.
Handles bucket management and text/JSON object access with proper
connection cleanup.

This client is pure infrastructure - it contains no business logic.
Use services layer for business logic that uses this client.
"""

import json
import logging
from io import BytesIO
from typing import Any, Optional

from minio import Minio
from minio.error import S3Error

logger = logging.getLogger(__name__)

MISSING_OBJECT_CODES = ("NoSuchKey", "NoSuchBucket", "NoSuchObject")


def create_buckets(client: Minio, buckets: list[str]) -> None:
    """
    Create the given buckets if they don't already exist.

    Idempotent - safe to call multiple times.

    Raises:
        S3Error: If bucket creation fails due to permissions or connectivity issues
    """
    for bucket_name in buckets:
        try:
            if not client.bucket_exists(bucket_name):
                client.make_bucket(bucket_name)
                logger.info(f"Created bucket: {bucket_name}")
            else:
                logger.info(f"Bucket already exists: {bucket_name}")
        except S3Error as e:
            logger.error(f"Failed to create bucket {bucket_name}: {e}")
            raise


def upload_text(client: Minio, bucket: str, object_name: str, content: str, content_type: str = "text/plain") -> str:
    """
    Upload UTF-8 text to MinIO object storage.

    Returns:
        S3 URI of uploaded object (e.g., "s3://eam-sync/mappings/src1/mapping.yaml")

    Raises:
        S3Error: If upload fails due to permissions, connectivity, or bucket not found
    """
    data = content.encode("utf-8")
    try:
        client.put_object(bucket, object_name, BytesIO(data), length=len(data), content_type=content_type)
        logger.info(f"Uploaded {object_name} to {bucket}")
        return f"s3://{bucket}/{object_name}"
    except S3Error as e:
        logger.error(f"Failed to upload {object_name} to {bucket}: {e}")
        raise


def get_text_content(client: Minio, bucket: str, object_name: str) -> Optional[str]:
    """
    Get object content as decoded UTF-8 string.

    Returns:
        Object content, or None if the object (or bucket) does not exist

    Raises:
        S3Error: If download fails for any other reason
    """
    response = None
    try:
        response = client.get_object(bucket, object_name)
        return response.read().decode("utf-8")
    except S3Error as e:
        if e.code in MISSING_OBJECT_CODES:
            logger.debug(f"Object {object_name} not found in {bucket}")
            return None
        logger.error(f"Failed to get text content from {object_name} in {bucket}: {e}")
        raise
    finally:
        if response is not None:
            response.close()
            response.release_conn()


def get_json_content(client: Minio, bucket: str, object_name: str) -> Optional[Any]:
    """
    Get object content as parsed JSON.

    Returns:
        Parsed JSON value, or None if the object does not exist

    Raises:
        S3Error: If download fails
        json.JSONDecodeError: If content is not valid JSON
    """
    content = get_text_content(client, bucket, object_name)
    if content is None:
        return None
    return json.loads(content)


def put_json_content(client: Minio, bucket: str, object_name: str, value: Any) -> str:
    """Serialize value as JSON and upload it."""
    return upload_text(client, bucket, object_name, json.dumps(value, indent=2), "application/json")
