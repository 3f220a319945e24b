#!/usr/bin/env python3
"""Tests for mutation operations, value serialization and statement rendering."""

import datetime
from decimal import Decimal

import pytest

from eam_sync_api.services.domain.sync.operations import (
    MergeEdge,
    MergeNode,
    describe,
    edge_statement,
    node_statement,
    quote_identifier,
    serialize_value,
    to_statement,
)


@pytest.mark.unit
class TestSerializeValue:
    """Test suite for serialize_value."""

    @pytest.mark.parametrize("value,expected", [
        (None, None),
        (True, True),
        (False, False),
        (42, 42),
        (1.5, 1.5),
        (float("nan"), None),
        (float("inf"), None),
        (Decimal("12"), 12),
        (Decimal("12.50"), 12.5),
        (Decimal("NaN"), None),
        ("text", "text"),
        (b"abc", "abc"),
        (b"\xff\xfe", "fffe"),
    ])
    def test_scalar_values(self, value, expected):
        assert serialize_value(value) == expected

    def test_integral_decimal_becomes_int(self):
        assert isinstance(serialize_value(Decimal("7.000")), int)

    def test_temporal_values_become_iso_strings(self):
        assert serialize_value(datetime.date(2024, 3, 1)) == "2024-03-01"
        assert serialize_value(datetime.datetime(2024, 3, 1, 8, 30)) == "2024-03-01T08:30:00"
        assert serialize_value(datetime.time(8, 30)) == "08:30:00"

    def test_other_values_become_strings(self):
        class Code:
            def __str__(self):
                return "C-1"

        assert serialize_value(Code()) == "C-1"


@pytest.mark.unit
class TestStatements:
    """Test suite for Cypher rendering."""

    def test_quote_identifier_doubles_backticks(self):
        assert quote_identifier("Device") == "`Device`"
        assert quote_identifier("we`ird") == "`we``ird`"

    @pytest.mark.parametrize("name", [None, ""])
    def test_quote_identifier_rejects_empty(self, name):
        with pytest.raises(ValueError):
            quote_identifier(name)

    def test_node_statement(self):
        op = MergeNode("Device", "deviceCode", "D1", {"name": "Maker", "weight": Decimal("2.5")})

        statement, params = node_statement(op)

        assert statement == "MERGE (n:`Device` {`deviceCode`: $key}) SET n += $props"
        assert params == {"key": "D1", "props": {"name": "Maker", "weight": 2.5, "deviceCode": "D1"}}

    def test_node_statement_with_extra_labels(self):
        op = MergeNode("Device", "deviceCode", "D1", extra_labels=("Maker",))

        statement, _ = node_statement(op)

        assert statement.endswith("SET n += $props SET n:`Maker`")

    def test_values_never_appear_in_statement(self):
        op = MergeNode("Device", "deviceCode", "x'}) DETACH DELETE n //", {"name": "' OR 1=1"})

        statement, params = node_statement(op)

        assert "DELETE" not in statement
        assert params["key"] == "x'}) DETACH DELETE n //"

    def test_edge_statement_merges_both_endpoints(self):
        op = MergeEdge("Unit", "unitId", "U1", "Device", "deviceCode", "D1", "CONTAINS")

        statement, params = edge_statement(op)

        assert statement == (
            "MERGE (a:`Unit` {`unitId`: $from_key}) "
            "MERGE (b:`Device` {`deviceCode`: $to_key}) "
            "MERGE (a)-[:`CONTAINS`]->(b)"
        )
        assert params == {"from_key": "U1", "to_key": "D1"}

    def test_to_statement_dispatches(self):
        node = MergeNode("Unit", "unitId", "U1")
        edge = MergeEdge("Unit", "unitId", "U1", "Device", "deviceCode", "D1", "CONTAINS")

        assert to_statement(node) == node_statement(node)
        assert to_statement(edge) == edge_statement(edge)
        with pytest.raises(TypeError):
            to_statement("MERGE (n)")

    def test_describe(self):
        assert describe(MergeNode("Unit", "unitId", "U1")) == "node Unit(unitId=U1)"
        assert describe(MergeEdge("Unit", "unitId", "U1", "Device", "deviceCode", "D1", "CONTAINS")) == (
            "edge Unit(U1)-[CONTAINS]->Device(D1)"
        )
