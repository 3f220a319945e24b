#!/usr/bin/env python3
"""Mapping specification model and YAML parser.

A mapping describes how a relational asset hierarchy becomes a graph:

- nodes: node types with their base label, MERGE key property and the
  ordered output-property -> source-column map, plus an optional dynamic
  label rule resolved through a lookup table.
- relationships: relationship type names and the node types they connect.
- roots: the table whose rows each describe one parent entity and one or
  more directly associated children (slots).
- hierarchy: the self-referencing detail table walked from the root
  children, with the link column and the parent-link column.

The parsed MappingSpec is immutable for the duration of a run.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

SQL_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_$#]*(\.[A-Za-z_][A-Za-z0-9_$#]*)?$")

DEFAULT_MAPPING_TEMPLATE = """\
# EAM to Neo4j mapping configuration
nodes:
  unit:
    label: Unit
    primaryKey: unitId
    source: EQJZ
    properties:
      unitId: INDOCNO
      name: SJZNAME

  equipment:
    label: Device
    primaryKey: deviceCode
    source: EQTREE
    dynamicLabelLookup:
      lookupTable: FUNPTYPE
      keyColumn: SFTYPE
      lookupKeyColumn: SFTYPE
      labelColumn: STYNAME
    properties:
      deviceCode: SFCODE
      name: SFNAME
      assetCode: SPMCODE
      installedAt: DFIXGMT
      installedBy: SFIXDWN
      removedAt: DUNFIX
      installFlag: IFSIGN
      category: SECODE
      weight: FWEIGHT
      unitOfMeasure: SMETUN
      size: SMSIZE
      stockNumber: STORERNO
      price: FPRICE
      currency: SCOINDW
      purchasedAt: DEQBUY
      manufacturer: SPRODUCT
      model: SMTYPE
      specification: SPECPI
      standardNumber: SSTNNO
      drawingNumber: SPICNO
      material: SMAKE
      manufacturedAt: DFACTORY
      serialNumber: SFACTNO
      supplier: SUPPLIER
      manufacturerCode: SPRODUCTOR
      maintainer: SERVICE
      typeCode: SFTYPE

relationships:
  - type: CONTAINS
    fromNode: unit
    toNode: equipment
  - type: CHILD
    fromNode: equipment
    toNode: equipment

# Each EQJZ row holds one unit and its two root machines (maker and packer)
roots:
  source: EQJZ
  nodeType: unit
  childNodeType: equipment
  relationship: CONTAINS
  slots:
    - name: maker
      properties:
        deviceCode: SFCODE
        name: SFNAME
        assetCode: SPMCODE
    - name: packer
      properties:
        deviceCode: SFCODE1
        name: SFNAME1
        assetCode: SPMCODE1

# EQTREE children point at their parent's IDOCID through SPARNO
hierarchy:
  source: EQTREE
  nodeType: equipment
  relationship: CHILD
  linkColumn: IDOCID
  parentLinkColumn: SPARNO
"""


@dataclass(frozen=True)
class DynamicLabelRule:
    """Resolve an extra label by looking up a record's type code in a lookup table."""
    key_field: str
    lookup_table_name: str
    lookup_key_field: str
    lookup_label_field: str


@dataclass(frozen=True)
class NodeType:
    name: str
    label: str
    primary_key_property: str
    property_map: dict[str, str]
    source: Optional[str] = None
    dynamic_label_rule: Optional[DynamicLabelRule] = None

    @property
    def primary_key_field(self) -> str:
        """Source column holding the MERGE key."""
        return self.property_map[self.primary_key_property]


@dataclass(frozen=True)
class RelationshipType:
    type_name: str
    from_node_type: str
    to_node_type: str


@dataclass(frozen=True)
class RootSlot:
    """One child position inside a root row."""
    name: str
    property_map: dict[str, str]
    key_field: str


@dataclass(frozen=True)
class RootsSpec:
    node_type: str
    child_node_type: str
    relationship: str
    slots: tuple[RootSlot, ...]
    source: Optional[str] = None
    query: Optional[str] = None

    def select_statement(self) -> str:
        return self.query or f"SELECT * FROM {self.source}"


@dataclass(frozen=True)
class HierarchySpec:
    source: str
    node_type: str
    relationship: str
    link_field: str
    parent_link_field: str


@dataclass(frozen=True)
class MappingSpec:
    node_types: dict[str, NodeType]
    relationship_types: dict[str, RelationshipType]
    roots: RootsSpec
    hierarchy: HierarchySpec
    extras: dict[str, Any] = field(default_factory=dict)

    @property
    def root_node_type(self) -> NodeType:
        return self.node_types[self.roots.node_type]

    @property
    def root_child_node_type(self) -> NodeType:
        return self.node_types[self.roots.child_node_type]

    @property
    def hierarchy_node_type(self) -> NodeType:
        return self.node_types[self.hierarchy.node_type]

    @property
    def containment_relationship(self) -> RelationshipType:
        return self.relationship_types[self.roots.relationship]

    @property
    def hierarchy_relationship(self) -> RelationshipType:
        return self.relationship_types[self.hierarchy.relationship]


def column_value(row: dict[str, Any], column: str) -> Any:
    """Read a mapped column from a row whose keys are upper-case."""
    return row.get(column.upper())


def is_null_key(value: Any) -> bool:
    """True for a missing natural key (None or a blank string)."""
    return value is None or (isinstance(value, str) and not value.strip())


def project(row: dict[str, Any], property_map: dict[str, str]) -> dict[str, Any]:
    """Map a source row onto output properties, in property_map order."""
    return {prop: column_value(row, column) for prop, column in property_map.items()}


def _require(section: dict[str, Any], key: str, where: str) -> Any:
    value = section.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ConfigError(f"Missing required '{key}' in {where}")
    return value


def _require_identifier(section: dict[str, Any], key: str, where: str) -> str:
    value = str(_require(section, key, where)).strip()
    _check_identifier(value, f"{where}.{key}")
    return value


def _check_identifier(value: str, where: str) -> None:
    if not SQL_IDENTIFIER.match(value):
        raise ConfigError(f"Invalid SQL identifier '{value}' in {where}")


def _parse_property_map(raw: Any, where: str) -> dict[str, str]:
    if not isinstance(raw, dict) or not raw:
        raise ConfigError(f"'properties' in {where} must be a non-empty mapping")
    properties = {}
    for prop_name, column in raw.items():
        if column is None:
            raise ConfigError(f"Property '{prop_name}' in {where} has no source column")
        column = str(column).strip()
        _check_identifier(column, f"{where}.properties.{prop_name}")
        properties[str(prop_name)] = column
    return properties


def _parse_node_type(name: str, raw: Any) -> NodeType:
    where = f"nodes.{name}"
    if not isinstance(raw, dict):
        raise ConfigError(f"Node type '{name}' must be a mapping")

    label = str(_require(raw, "label", where)).strip()
    primary_key = str(_require(raw, "primaryKey", where)).strip()
    properties = _parse_property_map(raw.get("properties"), where)

    if primary_key not in properties:
        raise ConfigError(f"primaryKey '{primary_key}' of node type '{name}' is not mapped in its properties")

    rule = None
    lookup = raw.get("dynamicLabelLookup")
    if lookup is not None:
        lookup_where = f"{where}.dynamicLabelLookup"
        if not isinstance(lookup, dict):
            raise ConfigError(f"{lookup_where} must be a mapping")
        rule = DynamicLabelRule(
            key_field=_require_identifier(lookup, "keyColumn", lookup_where),
            lookup_table_name=_require_identifier(lookup, "lookupTable", lookup_where),
            lookup_key_field=_require_identifier(lookup, "lookupKeyColumn", lookup_where),
            lookup_label_field=_require_identifier(lookup, "labelColumn", lookup_where),
        )
        mapped_columns = {column.upper() for column in properties.values()}
        if rule.key_field.upper() not in mapped_columns:
            raise ConfigError(
                f"Dynamic label keyColumn '{rule.key_field}' of node type '{name}' "
                f"is not one of its mapped properties"
            )

    source = raw.get("source")
    return NodeType(
        name=name,
        label=label,
        primary_key_property=primary_key,
        property_map=properties,
        source=str(source).strip() if source else None,
        dynamic_label_rule=rule,
    )


def _parse_relationships(raw: Any, node_types: dict[str, NodeType]) -> dict[str, RelationshipType]:
    if not isinstance(raw, list) or not raw:
        raise ConfigError("'relationships' must be a non-empty list")

    relationships = {}
    for index, entry in enumerate(raw):
        where = f"relationships[{index}]"
        if not isinstance(entry, dict):
            raise ConfigError(f"{where} must be a mapping")
        rel = RelationshipType(
            type_name=str(_require(entry, "type", where)).strip(),
            from_node_type=str(_require(entry, "fromNode", where)).strip(),
            to_node_type=str(_require(entry, "toNode", where)).strip(),
        )
        for endpoint in (rel.from_node_type, rel.to_node_type):
            if endpoint not in node_types:
                raise ConfigError(f"Relationship '{rel.type_name}' references unknown node type '{endpoint}'")
        if rel.type_name in relationships:
            raise ConfigError(f"Relationship type '{rel.type_name}' is defined more than once")
        relationships[rel.type_name] = rel
    return relationships


def _check_relationship(
    relationships: dict[str, RelationshipType], type_name: str, from_type: str, to_type: str, where: str
) -> None:
    rel = relationships.get(type_name)
    if rel is None:
        raise ConfigError(f"{where} references unknown relationship type '{type_name}'")
    if rel.from_node_type != from_type or rel.to_node_type != to_type:
        raise ConfigError(
            f"Relationship '{type_name}' connects {rel.from_node_type}->{rel.to_node_type}, "
            f"but {where} uses it for {from_type}->{to_type}"
        )


def _parse_roots(raw: Any, node_types: dict[str, NodeType], relationships: dict[str, RelationshipType]) -> RootsSpec:
    where = "roots"
    if not isinstance(raw, dict):
        raise ConfigError("Missing required 'roots' section")

    node_type = str(_require(raw, "nodeType", where)).strip()
    child_node_type = str(_require(raw, "childNodeType", where)).strip()
    for name in (node_type, child_node_type):
        if name not in node_types:
            raise ConfigError(f"roots references unknown node type '{name}'")

    relationship = str(_require(raw, "relationship", where)).strip()
    _check_relationship(relationships, relationship, node_type, child_node_type, where)

    source = raw.get("source")
    query = raw.get("query")
    if not source and not query:
        raise ConfigError("roots needs either 'source' or 'query'")
    if source:
        source = str(source).strip()
        _check_identifier(source, "roots.source")

    child = node_types[child_node_type]
    raw_slots = raw.get("slots")
    if not isinstance(raw_slots, list) or not raw_slots:
        raise ConfigError("roots.slots must be a non-empty list")

    slots = []
    for index, raw_slot in enumerate(raw_slots):
        slot_where = f"roots.slots[{index}]"
        if not isinstance(raw_slot, dict):
            raise ConfigError(f"{slot_where} must be a mapping")
        properties = _parse_property_map(raw_slot.get("properties"), slot_where)
        if child.primary_key_property not in properties:
            raise ConfigError(
                f"{slot_where} does not map the child primary key '{child.primary_key_property}'"
            )
        slots.append(RootSlot(
            name=str(raw_slot.get("name") or f"slot{index + 1}"),
            property_map=properties,
            key_field=properties[child.primary_key_property],
        ))

    return RootsSpec(
        node_type=node_type,
        child_node_type=child_node_type,
        relationship=relationship,
        slots=tuple(slots),
        source=source or None,
        query=str(query).strip() if query else None,
    )


def _parse_hierarchy(
    raw: Any, node_types: dict[str, NodeType], relationships: dict[str, RelationshipType]
) -> HierarchySpec:
    where = "hierarchy"
    if not isinstance(raw, dict):
        raise ConfigError("Missing required 'hierarchy' section")

    node_type = str(_require(raw, "nodeType", where)).strip()
    if node_type not in node_types:
        raise ConfigError(f"hierarchy references unknown node type '{node_type}'")

    relationship = str(_require(raw, "relationship", where)).strip()
    _check_relationship(relationships, relationship, node_type, node_type, where)

    return HierarchySpec(
        source=_require_identifier(raw, "source", where),
        node_type=node_type,
        relationship=relationship,
        link_field=_require_identifier(raw, "linkColumn", where),
        parent_link_field=_require_identifier(raw, "parentLinkColumn", where),
    )


def parse_mapping(text: str) -> MappingSpec:
    """Parse a YAML mapping document into a MappingSpec.

    Args:
        text: YAML mapping configuration

    Returns:
        Validated, immutable MappingSpec

    Raises:
        ConfigError: If the document is not valid YAML, or if a required node
            type, relationship type or section is missing or inconsistent
    """
    if text is None or not text.strip():
        raise ConfigError("Mapping configuration is empty")

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Mapping configuration is not valid YAML: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError("Mapping configuration must be a YAML mapping")

    raw_nodes = raw.get("nodes")
    if not isinstance(raw_nodes, dict) or not raw_nodes:
        raise ConfigError("'nodes' must be a non-empty mapping of node types")

    node_types = {str(name): _parse_node_type(str(name), entry) for name, entry in raw_nodes.items()}
    relationships = _parse_relationships(raw.get("relationships"), node_types)
    roots = _parse_roots(raw.get("roots"), node_types, relationships)
    hierarchy = _parse_hierarchy(raw.get("hierarchy"), node_types, relationships)

    if roots.child_node_type != hierarchy.node_type:
        raise ConfigError(
            f"roots.childNodeType '{roots.child_node_type}' must match hierarchy.nodeType '{hierarchy.node_type}'"
        )

    # Dynamic labels are resolved only while walking the hierarchy
    for node_type in node_types.values():
        if node_type.dynamic_label_rule is not None and node_type.name != hierarchy.node_type:
            raise ConfigError(
                f"dynamicLabelLookup on node type '{node_type.name}' is only supported on "
                f"hierarchy.nodeType '{hierarchy.node_type}'"
            )

    extras = {k: v for k, v in raw.items() if k not in ("nodes", "relationships", "roots", "hierarchy")}
    if extras:
        logger.debug(f"Ignoring unknown mapping sections: {sorted(extras)}")

    return MappingSpec(
        node_types=node_types,
        relationship_types=relationships,
        roots=roots,
        hierarchy=hierarchy,
        extras=extras,
    )
