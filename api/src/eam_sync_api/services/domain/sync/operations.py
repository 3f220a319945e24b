#!/usr/bin/env python3
"""Typed graph mutation operations and their Cypher rendering.

Extractor and walker emit MergeNode / MergeEdge values; the batcher turns
each one into a parameterized Cypher statement exactly once. Identifiers
(labels, property names, relationship types) are backtick-quoted through
quote_identifier and every value travels as a statement parameter after
passing through serialize_value.
"""

import datetime
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Union


@dataclass(frozen=True)
class MergeNode:
    """Create-if-absent-else-update a node keyed on (label, pk_property, pk_value)."""
    label: str
    pk_property: str
    pk_value: Any
    properties: dict[str, Any] = field(default_factory=dict)
    extra_labels: tuple[str, ...] = ()


@dataclass(frozen=True)
class MergeEdge:
    """Create-if-absent a relationship between two keyed nodes."""
    from_label: str
    from_pk_property: str
    from_pk_value: Any
    to_label: str
    to_pk_property: str
    to_pk_value: Any
    rel_type: str


MutationOp = Union[MergeNode, MergeEdge]


def serialize_value(value: Any) -> Any:
    """Convert a relational source value into a graph property value.

    - None stays null; NaN and infinities become null
    - bool and int pass through; Decimal becomes int when integral, else float
    - datetime, date and time become ISO-8601 strings
    - bytes are decoded as UTF-8 (hex when not decodable)
    - anything else is stored as its string form
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return value
    if isinstance(value, Decimal):
        if not value.is_finite():
            return None
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return raw.hex()
    if isinstance(value, str):
        return value
    return str(value)


def quote_identifier(name: str) -> str:
    """Backtick-quote a label, property name or relationship type."""
    if name is None or str(name) == "":
        raise ValueError("Graph identifier must not be empty")
    return "`" + str(name).replace("`", "``") + "`"


def node_statement(op: MergeNode) -> tuple[str, dict[str, Any]]:
    """Render a MergeNode as (cypher, parameters)."""
    statement = (
        f"MERGE (n:{quote_identifier(op.label)} {{{quote_identifier(op.pk_property)}: $key}}) "
        f"SET n += $props"
    )
    if op.extra_labels:
        labels = "".join(f":{quote_identifier(label)}" for label in op.extra_labels)
        statement += f" SET n{labels}"

    props = {name: serialize_value(value) for name, value in op.properties.items()}
    props[op.pk_property] = serialize_value(op.pk_value)
    return statement, {"key": serialize_value(op.pk_value), "props": props}


def edge_statement(op: MergeEdge) -> tuple[str, dict[str, Any]]:
    """Render a MergeEdge as (cypher, parameters).

    Both endpoints are merged on their keys first, so the relationship is
    written even when the child's full node statement comes later.
    """
    statement = (
        f"MERGE (a:{quote_identifier(op.from_label)} {{{quote_identifier(op.from_pk_property)}: $from_key}}) "
        f"MERGE (b:{quote_identifier(op.to_label)} {{{quote_identifier(op.to_pk_property)}: $to_key}}) "
        f"MERGE (a)-[:{quote_identifier(op.rel_type)}]->(b)"
    )
    return statement, {
        "from_key": serialize_value(op.from_pk_value),
        "to_key": serialize_value(op.to_pk_value),
    }


def to_statement(op: MutationOp) -> tuple[str, dict[str, Any]]:
    if isinstance(op, MergeNode):
        return node_statement(op)
    if isinstance(op, MergeEdge):
        return edge_statement(op)
    raise TypeError(f"Unsupported mutation operation: {type(op).__name__}")


def describe(op: MutationOp) -> str:
    """Short human-readable form used in log lines."""
    if isinstance(op, MergeNode):
        return f"node {op.label}({op.pk_property}={op.pk_value})"
    return (
        f"edge {op.from_label}({op.from_pk_value})-[{op.rel_type}]->"
        f"{op.to_label}({op.to_pk_value})"
    )
