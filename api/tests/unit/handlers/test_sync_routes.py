"""Unit tests for the sync, source and admin API endpoints."""

import os
from unittest.mock import Mock, patch

import pytest
from fastapi.testclient import TestClient

from eam_sync_api.core.dependencies import (
    get_mapping_store,
    get_neo4j_client,
    get_source_registry,
    get_status_tracker,
    get_sync_engine,
)
from eam_sync_api.main import app
from eam_sync_api.models.models import SourceConfig
from eam_sync_api.services.domain.sync.mapping import DEFAULT_MAPPING_TEMPLATE
from eam_sync_api.services.status_tracker import RunStatusTracker
from tests.fixtures.sync_fixtures import SCENARIO_MAPPING

AUTH = {"Authorization": "Bearer devtoken"}


@pytest.mark.unit
class TestSyncEndpoints:
    """Test suite for the API endpoints with services replaced by mocks."""

    @pytest.fixture(autouse=True)
    def dev_token(self):
        with patch.dict(os.environ, {"SYNC_API_TOKEN": "devtoken"}):
            yield

    @pytest.fixture
    def services(self):
        registry = Mock()
        registry.exists.return_value = True
        registry.list_sources.return_value = [
            SourceConfig(id="plant", name="Plant", url="sqlite://", sync_enabled=True),
        ]
        store = Mock()
        store.load.return_value = DEFAULT_MAPPING_TEMPLATE
        mocks = {
            "registry": registry,
            "store": store,
            "engine": Mock(),
            "tracker": RunStatusTracker(),
            "neo4j": Mock(),
        }
        app.dependency_overrides[get_source_registry] = lambda: mocks["registry"]
        app.dependency_overrides[get_mapping_store] = lambda: mocks["store"]
        app.dependency_overrides[get_sync_engine] = lambda: mocks["engine"]
        app.dependency_overrides[get_status_tracker] = lambda: mocks["tracker"]
        app.dependency_overrides[get_neo4j_client] = lambda: mocks["neo4j"]
        yield mocks
        app.dependency_overrides.clear()

    @pytest.fixture
    def client(self, services):
        """Create test client for FastAPI app."""
        return TestClient(app)

    def test_requires_valid_token(self, client):
        response = client.get("/api/sync/status/plant", headers={"Authorization": "Bearer wrong"})

        assert response.status_code == 401

    def test_requires_token(self, client):
        response = client.get("/api/sync/status/plant")

        assert response.status_code in (401, 403)

    def test_get_mapping_returns_yaml(self, client, services):
        response = client.get("/api/sync/mapping/plant", headers=AUTH)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-yaml")
        assert response.text == DEFAULT_MAPPING_TEMPLATE
        services["store"].load.assert_called_once_with("plant")

    def test_save_mapping_reads_raw_body(self, client, services):
        services["store"].save.return_value = Mock(node_types={"unit": None}, relationship_types={"CONTAINS": None})

        response = client.post("/api/sync/mapping/plant", content=SCENARIO_MAPPING, headers=AUTH)

        assert response.status_code == 200
        assert response.json()["status"] == "saved"
        services["store"].save.assert_called_once_with("plant", SCENARIO_MAPPING)

    def test_save_mapping_rejects_non_utf8_body(self, client, services):
        response = client.post("/api/sync/mapping/plant", content=b"\xff\xfe", headers=AUTH)

        assert response.status_code == 400
        services["store"].save.assert_not_called()

    def test_trigger_returns_accepted(self, client, services):
        response = client.post("/api/sync/trigger/plant", headers=AUTH)

        assert response.status_code == 202
        assert response.json()["status"] == "started"
        services["engine"].trigger.assert_called_once_with("plant")

    def test_trigger_conflict(self, client, services):
        services["engine"].trigger.return_value = None

        response = client.post("/api/sync/trigger/plant", headers=AUTH)

        assert response.status_code == 409

    def test_status(self, client, services):
        services["tracker"].begin("plant")
        services["tracker"].set_stage("plant", "Walking hierarchy")

        response = client.get("/api/sync/status/plant", headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "IN_PROGRESS"
        assert data["stage"] == "Walking hierarchy"
        assert data["history"][0]["message"] == "Synchronization started."

    def test_toggle(self, client, services):
        services["registry"].set_sync_enabled.return_value = SourceConfig(
            id="plant", name="Plant", url="sqlite://", sync_enabled=False
        )

        response = client.post("/api/sync/toggle/plant", json={"enabled": False}, headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"source_id": "plant", "sync_enabled": False}

    def test_toggle_without_enabled(self, client):
        response = client.post("/api/sync/toggle/plant", json={}, headers=AUTH)

        assert response.status_code == 400

    def test_list_sources(self, client):
        response = client.get("/api/sources", headers=AUTH)

        assert response.status_code == 200
        assert response.json() == [{"id": "plant", "name": "Plant", "sync_enabled": True}]

    def test_put_source(self, client, services):
        response = client.put(
            "/api/sources/lab",
            json={"name": "Lab", "url": "sqlite:///lab.db", "sync_enabled": True},
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.json() == {"id": "lab", "name": "Lab", "sync_enabled": True}
        services["registry"].put.assert_called_once()

    def test_neo4j_stats(self, client, services):
        services["neo4j"].get_stats.return_value = {"nodeCount": 8, "relationshipCount": 7}

        response = client.get("/api/admin/neo4j/stats", headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"nodeCount": 8, "relationshipCount": 7}


@pytest.mark.unit
class TestHealthEndpoints:

    @pytest.fixture
    def client(self):
        return TestClient(app)

    def test_healthz(self, client):
        response = client.get("/healthz")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-API-Version" in response.headers

    def test_readyz(self, client):
        with patch("eam_sync_api.main.get_s3_client") as mock_s3, \
             patch("eam_sync_api.main.get_neo4j_client") as mock_neo4j:
            mock_s3.return_value.list_buckets.return_value = []

            response = client.get("/readyz")

        assert response.status_code == 200
        mock_neo4j.return_value.verify_connectivity.assert_called_once()

    def test_readyz_not_ready(self, client):
        with patch("eam_sync_api.main.get_s3_client") as mock_s3, \
             patch("eam_sync_api.main.get_neo4j_client"):
            mock_s3.return_value.list_buckets.side_effect = ConnectionError("minio down")

            response = client.get("/readyz")

        assert response.status_code == 503
