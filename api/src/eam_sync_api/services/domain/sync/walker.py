#!/usr/bin/env python3
"""Hierarchy traversal over a self-referencing detail table.

Starting from the frontier produced by root extraction, every key is
resolved to its full detail record, written as a node with its computed
label set, and its children (rows whose parent-link column equals the
node's link id) are connected and walked in turn.

Traversal is depth-first over an explicit stack of pending keys, so depth
is bounded by memory rather than the interpreter's recursion limit. A
per-run visited set guarantees each key is fully processed at most once,
which also terminates walks over cyclic or self-referencing data.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Optional

from .batcher import GraphMutationBatcher
from .errors import SourceReadError
from .mapping import MappingSpec, column_value, is_null_key, project
from .operations import MergeEdge, MergeNode

logger = logging.getLogger(__name__)


@dataclass
class WalkStats:
    nodes: int = 0
    edges: int = 0
    revisits: int = 0
    missing: int = 0
    skipped_children: int = 0
    unresolved_labels: int = 0
    branch_failures: int = 0
    max_depth: int = 0


class HierarchyWalker:
    """Walks the detail hierarchy and emits full nodes and hierarchy edges."""

    def __init__(
        self,
        mapping: MappingSpec,
        reader,
        batcher: GraphMutationBatcher,
        log,
        label_lookup: Optional[dict[str, str]] = None,
    ):
        """
        Args:
            mapping: Parsed mapping for the run
            reader: Relational reader exposing query_by_key and query_children
            batcher: Mutation batcher receiving emitted operations
            log: Run logger
            label_lookup: Type code -> label map for the node type's dynamic
                label rule (codes trimmed)
        """
        self.mapping = mapping
        self.reader = reader
        self.batcher = batcher
        self.log = log
        self.label_lookup = label_lookup or {}
        self.node_type = mapping.hierarchy_node_type
        self.hierarchy = mapping.hierarchy
        self.relationship = mapping.hierarchy_relationship
        self.visited: set = set()
        self.stats = WalkStats()

    def walk(self, frontier: Iterable[Any]) -> WalkStats:
        """Walk every key in the frontier to exhaustion."""
        # Stack entries are (key, depth); reversed so the first key is walked first
        stack = [(key, 0) for key in reversed(list(frontier))]

        while stack:
            key, depth = stack.pop()
            if key in self.visited:
                self.stats.revisits += 1
                continue
            self.visited.add(key)
            self.stats.max_depth = max(self.stats.max_depth, depth)

            try:
                child_keys = self._process(key)
            except SourceReadError as e:
                self.stats.branch_failures += 1
                self.log.error(f"Failed to process {self.node_type.label} {key}, skipping branch: {e}")
                continue

            stack.extend((child_key, depth + 1) for child_key in reversed(child_keys))

        return self.stats

    def _process(self, key: Any) -> list[Any]:
        """Emit the node for key and edges to its children; return the child keys."""
        pk_field = self.node_type.primary_key_field
        record = self.reader.query_by_key(self.hierarchy.source, pk_field, key)
        if record is None:
            self.stats.missing += 1
            self.log.warn(f"{self.node_type.label} {key} not found in {self.hierarchy.source}, skipping branch")
            return []

        self.batcher.add(
            MergeNode(
                label=self.node_type.label,
                pk_property=self.node_type.primary_key_property,
                pk_value=key,
                properties=project(record, self.node_type.property_map),
                extra_labels=self.resolve_labels(key, record),
            ),
            f"{self.node_type.label} {key}",
        )
        self.stats.nodes += 1

        link_id = column_value(record, self.hierarchy.link_field)
        if link_id is None:
            self.log.warn(f"{self.node_type.label} {key} has no {self.hierarchy.link_field}, children not resolved")
            return []

        child_keys = []
        for child in self.reader.query_children(self.hierarchy.source, self.hierarchy.parent_link_field, link_id):
            child_key = column_value(child, pk_field)
            if is_null_key(child_key):
                self.stats.skipped_children += 1
                self.log.warn(
                    f"Child of {self.node_type.label} {key} ({self.hierarchy.link_field}={link_id}) "
                    f"has null {pk_field}, skipping"
                )
                continue

            self.batcher.add(
                MergeEdge(
                    from_label=self.node_type.label,
                    from_pk_property=self.node_type.primary_key_property,
                    from_pk_value=key,
                    to_label=self.node_type.label,
                    to_pk_property=self.node_type.primary_key_property,
                    to_pk_value=child_key,
                    rel_type=self.relationship.type_name,
                ),
                f"{self.node_type.label} {key} {self.relationship.type_name}",
            )
            self.stats.edges += 1
            child_keys.append(child_key)

        self.log.debug(f"{self.node_type.label} {key}: {len(child_keys)} children")
        return child_keys

    def resolve_labels(self, key: Any, record: dict[str, Any]) -> tuple[str, ...]:
        """Return the extra labels for a record (empty when unresolved)."""
        rule = self.node_type.dynamic_label_rule
        if rule is None:
            return ()

        code = column_value(record, rule.key_field)
        if is_null_key(code):
            self.stats.unresolved_labels += 1
            self.log.warn(f"{self.node_type.label} {key} has no {rule.key_field}, using base label only")
            return ()

        code = str(code).strip()
        label = self.label_lookup.get(code)
        if label is None:
            self.stats.unresolved_labels += 1
            self.log.warn(
                f"Type code '{code}' of {self.node_type.label} {key} not found in "
                f"{rule.lookup_table_name}, using base label only"
            )
            return ()

        if label == self.node_type.label:
            return ()
        return (label,)
