#!/usr/bin/env python3
"""Tests for root entity extraction."""

import pytest

from eam_sync_api.services.domain.sync.batcher import GraphMutationBatcher
from eam_sync_api.services.domain.sync.extractor import RootEntityExtractor
from eam_sync_api.services.domain.sync.mapping import parse_mapping
from tests.fixtures.sync_fixtures import SCENARIO_MAPPING, RecordingLog
from tests.utils.fake_graph import FakeGraphStore


def root_row(unit="U1", maker="D1", packer="D2"):
    return {
        "INDOCNO": unit, "SJZNAME": f"Unit {unit}",
        "SFCODE": maker, "SFNAME": "Maker",
        "SFCODE1": packer, "SFNAME1": "Packer",
    }


@pytest.mark.unit
class TestRootEntityExtractor:
    """Test suite for RootEntityExtractor."""

    @pytest.fixture
    def store(self):
        return FakeGraphStore()

    @pytest.fixture
    def log(self):
        return RecordingLog()

    @pytest.fixture
    def extractor(self, store, log):
        batcher = GraphMutationBatcher(store.session(), log)
        return RootEntityExtractor(parse_mapping(SCENARIO_MAPPING), batcher, log)

    def _flush(self, extractor):
        extractor.batcher.flush()

    def test_emits_parent_children_and_containment_edges(self, extractor, store):
        result = extractor.extract([root_row()])
        self._flush(extractor)

        assert result.rows == 1
        assert result.parents == 1
        assert result.children == 2
        assert result.frontier == ["D1", "D2"]
        assert store.node_keys("Unit") == {"U1"}
        assert store.node_keys("Device") == {"D1", "D2"}
        assert store.edge_pairs("CONTAINS") == {("U1", "D1"), ("U1", "D2")}

    def test_child_nodes_carry_slot_properties(self, extractor, store):
        extractor.extract([root_row()])
        self._flush(extractor)

        assert store.node("Device", "D2")["props"] == {"deviceCode": "D2", "name": "Packer"}
        assert store.node("Unit", "U1")["props"] == {"unitId": "U1", "name": "Unit U1"}

    def test_null_parent_skips_whole_row(self, extractor, store, log):
        result = extractor.extract([root_row(unit=None)])
        self._flush(extractor)

        assert result.skipped_rows == 1
        assert result.frontier == []
        assert store.nodes == {}
        assert log.warnings == 1

    def test_null_child_skips_only_its_slot(self, extractor, store, log):
        result = extractor.extract([root_row(maker=None)])
        self._flush(extractor)

        assert result.skipped_slots == 1
        assert result.frontier == ["D2"]
        assert store.node_keys("Unit") == {"U1"}
        assert store.node_keys("Device") == {"D2"}
        assert store.edge_pairs("CONTAINS") == {("U1", "D2")}
        assert "maker key SFCODE is null" in log.messages("WARN")[0]

    def test_blank_child_key_counts_as_null(self, extractor, store):
        result = extractor.extract([root_row(packer="   ")])

        assert result.skipped_slots == 1
        assert result.frontier == ["D1"]

    def test_frontier_is_deduplicated_across_rows(self, extractor):
        result = extractor.extract([
            root_row(unit="U1", maker="D1", packer="D2"),
            root_row(unit="U2", maker="D2", packer="D3"),
        ])

        assert result.frontier == ["D1", "D2", "D3"]
        assert result.children == 4

    def test_empty_roots(self, extractor):
        result = extractor.extract([])

        assert result.rows == 0
        assert result.frontier == []
