#!/usr/bin/env python3
"""Root entity extraction.

Each roots row describes one parent entity (e.g. a production unit) and one
or more child slots (e.g. its maker and packer machines). The extractor
emits the parent node, a partial node and a containment edge per child, and
seeds the hierarchy walker's frontier with the child keys.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .batcher import GraphMutationBatcher
from .mapping import MappingSpec, column_value, is_null_key, project
from .operations import MergeEdge, MergeNode

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    rows: int = 0
    parents: int = 0
    children: int = 0
    skipped_rows: int = 0
    skipped_slots: int = 0
    frontier: list[Any] = field(default_factory=list)


class RootEntityExtractor:
    """Turns roots rows into mutation operations and a deduplicated frontier."""

    def __init__(self, mapping: MappingSpec, batcher: GraphMutationBatcher, log):
        self.mapping = mapping
        self.batcher = batcher
        self.log = log
        self.parent_type = mapping.root_node_type
        self.child_type = mapping.root_child_node_type
        self.relationship = mapping.containment_relationship
        self._seen: set = set()

    def extract(self, rows: Iterable[dict[str, Any]]) -> ExtractionResult:
        result = ExtractionResult()
        for row in rows:
            result.rows += 1
            self.process_row(row, result)
        return result

    def process_row(self, row: dict[str, Any], result: ExtractionResult) -> None:
        parent_key = column_value(row, self.parent_type.primary_key_field)
        if is_null_key(parent_key):
            result.skipped_rows += 1
            self.log.warn(
                f"Skipping root row {result.rows}: {self.parent_type.label} key "
                f"{self.parent_type.primary_key_field} is null"
            )
            return

        self.batcher.add(
            MergeNode(
                label=self.parent_type.label,
                pk_property=self.parent_type.primary_key_property,
                pk_value=parent_key,
                properties=project(row, self.parent_type.property_map),
            ),
            f"{self.parent_type.label} {parent_key}",
        )
        result.parents += 1

        # Slots are independent: a null key only skips its own slot
        for slot in self.mapping.roots.slots:
            child_key = column_value(row, slot.key_field)
            if is_null_key(child_key):
                result.skipped_slots += 1
                self.log.warn(
                    f"{self.parent_type.label} {parent_key}: {slot.name} key {slot.key_field} is null, skipping slot"
                )
                continue

            self.batcher.add(
                MergeNode(
                    label=self.child_type.label,
                    pk_property=self.child_type.primary_key_property,
                    pk_value=child_key,
                    properties=project(row, slot.property_map),
                ),
                f"{self.child_type.label} {child_key}",
            )
            self.batcher.add(
                MergeEdge(
                    from_label=self.parent_type.label,
                    from_pk_property=self.parent_type.primary_key_property,
                    from_pk_value=parent_key,
                    to_label=self.child_type.label,
                    to_pk_property=self.child_type.primary_key_property,
                    to_pk_value=child_key,
                    rel_type=self.relationship.type_name,
                ),
                f"{self.parent_type.label} {parent_key} {self.relationship.type_name}",
            )
            result.children += 1

            if child_key not in self._seen:
                self._seen.add(child_key)
                result.frontier.append(child_key)
