#!/usr/bin/env python3

import os

import pytest
from minio import Minio

from eam_sync_api.clients.s3_client import create_buckets
from eam_sync_api.models.models import SourceConfig
from eam_sync_api.services.domain.sync.mapping import DEFAULT_MAPPING_TEMPLATE
from eam_sync_api.services.mapping_store import MappingStore, mapping_object_name
from eam_sync_api.services.source_registry import REGISTRY_OBJECT, SourceRegistry
from tests.fixtures.sync_fixtures import SCENARIO_MAPPING

TEST_BUCKET = "eam-sync-integration"


@pytest.mark.integration
class TestMinioIntegration:
    """Integration tests for mapping and source storage in MinIO"""

    @pytest.fixture
    def minio_client(self):
        """MinIO client connected to service (GitHub Actions or local)"""
        endpoint = os.getenv("MINIO_ENDPOINT", "localhost:9000")
        access_key = os.getenv("MINIO_ACCESS_KEY", "minioadmin")
        secret_key = os.getenv("MINIO_SECRET_KEY", "minioadmin")
        secure = os.getenv("MINIO_SECURE", "false").lower() == "true"

        client = Minio(endpoint, access_key=access_key, secret_key=secret_key, secure=secure)
        try:
            create_buckets(client, [TEST_BUCKET])
        except Exception as e:
            pytest.skip(f"MinIO is not reachable: {e}")

        yield client

        for name in (mapping_object_name("plant"), REGISTRY_OBJECT):
            client.remove_object(TEST_BUCKET, name)

    def test_mapping_store_round_trip(self, minio_client):
        store = MappingStore(minio_client, TEST_BUCKET)
        minio_client.remove_object(TEST_BUCKET, mapping_object_name("plant"))

        assert store.load("plant") == DEFAULT_MAPPING_TEMPLATE

        store.save("plant", SCENARIO_MAPPING)

        assert store.load("plant") == SCENARIO_MAPPING

    def test_source_registry_round_trip(self, minio_client):
        registry = SourceRegistry(minio_client, TEST_BUCKET)
        minio_client.remove_object(TEST_BUCKET, REGISTRY_OBJECT)

        registry.put(SourceConfig(id="plant", name="Plant", url="sqlite:///plant.db"))
        registry.set_sync_enabled("plant", True)

        assert [s.id for s in registry.enabled_sources()] == ["plant"]
