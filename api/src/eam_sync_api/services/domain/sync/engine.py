#!/usr/bin/env python3
"""
Sync Engine

Runs one synchronization of a relational source into the graph store:

1. Load and parse the source's mapping configuration
2. Open the relational source and the graph store
3. Ensure MERGE key indexes exist
4. Load the dynamic-label lookup table of the hierarchy node type
5. Check the hierarchy table exposes the key and link columns
6. Extract root entities, then walk the hierarchy from their children
7. Record the outcome in the status tracker

Each step is a named stage; a failure records the active stage. Runs are
executed on a bounded thread pool and a source can only have one run in
progress at a time.
"""

import logging
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import ExitStack
from typing import Any, Optional

from ....core.config import sync_config
from ...status_tracker import RunStatusTracker, SyncRun, SyncStatus
from ...sync_log_service import SyncLogService, SyncRunLogger
from .batcher import GraphMutationBatcher
from .errors import ConfigError, RunInProgressError, SyncError
from .extractor import ExtractionResult, RootEntityExtractor
from .mapping import MappingSpec, column_value, parse_mapping
from .schema import GraphSchemaPreparer
from .walker import HierarchyWalker, WalkStats

logger = logging.getLogger(__name__)

STAGE_INITIALIZATION = "Initialization"
STAGE_LOAD_MAPPING = "Loading mapping config"
STAGE_CONNECT_SOURCE = "Connecting to source"
STAGE_CONNECT_GRAPH = "Connecting to graph"
STAGE_PREPARE_SCHEMA = "Preparing graph schema"
STAGE_LOAD_LOOKUPS = "Loading lookup tables"
STAGE_CHECK_HIERARCHY = "Checking hierarchy schema"
STAGE_EXTRACT_ROOTS = "Extracting root entities"
STAGE_WALK_HIERARCHY = "Walking hierarchy"
STAGE_FINALIZING = "Finalizing"


class _RunContext:
    """Tracks the active stage of one run."""

    def __init__(self, source_id: str, tracker: RunStatusTracker, log: SyncRunLogger):
        self.source_id = source_id
        self.tracker = tracker
        self.log = log
        self.stage = STAGE_INITIALIZATION
        self.started = time.monotonic()

    def enter(self, stage: str) -> None:
        self.stage = stage
        self.log.stage = stage
        self.tracker.set_stage(self.source_id, stage)
        self.log.info(f"Step: {stage}")

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)


class SyncEngine:
    """
    Orchestrates sync runs.

    Collaborators are injected as factories so the engine never owns
    connection settings:

    - mapping_loader(source_id) -> YAML mapping text
    - reader_factory(source_id) -> relational reader (query, query_by_key,
      query_children, column_names, close); raises FatalConnectionError
    - graph_factory() -> context manager yielding a graph session
      (begin_transaction, run); raises FatalConnectionError
    """

    def __init__(
        self,
        mapping_loader: Callable[[str], str],
        reader_factory: Callable[[str], Any],
        graph_factory: Callable[[], Any],
        tracker: RunStatusTracker,
        log_service: Optional[SyncLogService] = None,
        batch_size: int = None,
        max_workers: int = None,
    ):
        self.mapping_loader = mapping_loader
        self.reader_factory = reader_factory
        self.graph_factory = graph_factory
        self.tracker = tracker
        self.log_service = log_service
        self.batch_size = batch_size or sync_config.BATCH_SIZE
        self.executor = ThreadPoolExecutor(
            max_workers=max_workers or sync_config.MAX_CONCURRENT_RUNS,
            thread_name_prefix="sync-run",
        )

    def trigger(self, source_id: str) -> Optional[Future]:
        """Start a run in the background.

        Returns:
            Future resolving to the final SyncRun snapshot, or None if a run
            for the source is already in progress
        """
        if not self.tracker.begin(source_id):
            logger.info(f"Sync already in progress for source {source_id}, trigger ignored")
            return None

        try:
            return self.executor.submit(self._execute, source_id)
        except RuntimeError as e:
            # Executor shut down
            self.tracker.fail(source_id, STAGE_INITIALIZATION, str(e), 0)
            raise

    def run(self, source_id: str) -> SyncRun:
        """Run a sync synchronously on the calling thread.

        Raises:
            RunInProgressError: If a run for the source is already in progress
        """
        if not self.tracker.begin(source_id):
            raise RunInProgressError(f"Sync already in progress for source {source_id}")
        return self._execute(source_id)

    def shutdown(self, wait: bool = False) -> None:
        self.executor.shutdown(wait=wait)

    def _execute(self, source_id: str) -> SyncRun:
        log = SyncRunLogger(source_id, self.log_service)
        ctx = _RunContext(source_id, self.tracker, log)
        log.stage = ctx.stage
        log.info(f"Starting synchronization for source {source_id}")

        try:
            message = self._sync(ctx)
        except SyncError as e:
            log.error(f"Synchronization failed during step '{ctx.stage}': {e}")
            self.tracker.fail(source_id, ctx.stage, str(e), ctx.elapsed_ms())
        except Exception as e:
            logger.exception(f"Unexpected error during sync of source {source_id}")
            log.error(f"Synchronization failed during step '{ctx.stage}': {e}")
            self.tracker.fail(source_id, ctx.stage, f"{type(e).__name__}: {e}", ctx.elapsed_ms())
        else:
            duration_ms = ctx.elapsed_ms()
            log.info(f"Synchronization finished in {duration_ms} ms. {message}")
            self.tracker.complete(source_id, SyncStatus.SUCCESS, message, duration_ms)

        return self.tracker.get(source_id)

    def _sync(self, ctx: _RunContext) -> str:
        log = ctx.log

        ctx.enter(STAGE_LOAD_MAPPING)
        mapping = parse_mapping(self.mapping_loader(ctx.source_id))

        with ExitStack() as resources:
            ctx.enter(STAGE_CONNECT_SOURCE)
            reader = self.reader_factory(ctx.source_id)
            resources.callback(reader.close)

            ctx.enter(STAGE_CONNECT_GRAPH)
            session = resources.enter_context(self.graph_factory())

            ctx.enter(STAGE_PREPARE_SCHEMA)
            GraphSchemaPreparer(session, log).prepare(mapping)

            ctx.enter(STAGE_LOAD_LOOKUPS)
            label_lookup = self.load_label_lookup(reader, mapping, log)

            ctx.enter(STAGE_CHECK_HIERARCHY)
            self.check_hierarchy(reader, mapping)

            batcher = GraphMutationBatcher(session, log, self.batch_size)

            ctx.enter(STAGE_EXTRACT_ROOTS)
            extractor = RootEntityExtractor(mapping, batcher, log)
            extraction = extractor.extract(reader.query(mapping.roots.select_statement()))
            batcher.flush("root entities")
            if extraction.rows == 0:
                log.warn(f"No rows found in {mapping.roots.source or 'roots query'}")
            log.info(
                f"Root extraction: {extraction.rows} rows, {extraction.parents} "
                f"{mapping.root_node_type.label} nodes, {len(extraction.frontier)} root "
                f"{mapping.root_child_node_type.label} keys"
            )

            ctx.enter(STAGE_WALK_HIERARCHY)
            walker = HierarchyWalker(mapping, reader, batcher, log, label_lookup)
            walk = walker.walk(extraction.frontier)
            batcher.flush("hierarchy")

            ctx.enter(STAGE_FINALIZING)
            return self.summarize(mapping, extraction, walk, batcher, log)

    def load_label_lookup(self, reader, mapping: MappingSpec, log) -> dict[str, str]:
        """Load the hierarchy node type's dynamic-label lookup table, if it has one.

        Returns:
            {trimmed code: trimmed label}, empty when no rule is configured
        """
        rule = mapping.hierarchy_node_type.dynamic_label_rule
        if rule is None:
            return {}

        table = {}
        sql = f"SELECT {rule.lookup_key_field}, {rule.lookup_label_field} FROM {rule.lookup_table_name}"
        for row in reader.query(sql):
            code = column_value(row, rule.lookup_key_field)
            label = column_value(row, rule.lookup_label_field)
            if code is None or label is None or not str(label).strip():
                log.warn(f"Skipping {rule.lookup_table_name} row with null code or label: {code!r}")
                continue
            table[str(code).strip()] = str(label).strip()
        log.info(f"Loaded {len(table)} labels from {rule.lookup_table_name}")
        return table

    def check_hierarchy(self, reader, mapping: MappingSpec) -> None:
        """Ensure the hierarchy table exposes the key and link columns.

        Raises:
            ConfigError: If a required column is missing
        """
        hierarchy = mapping.hierarchy
        columns = reader.column_names(hierarchy.source)
        required = [
            mapping.hierarchy_node_type.primary_key_field,
            hierarchy.link_field,
            hierarchy.parent_link_field,
        ]
        missing = [column for column in required if column.upper() not in columns]
        if missing:
            raise ConfigError(
                f"Table {hierarchy.source} is missing required hierarchy columns: {', '.join(missing)}"
            )

    @staticmethod
    def summarize(
        mapping: MappingSpec,
        extraction: ExtractionResult,
        walk: WalkStats,
        batcher: GraphMutationBatcher,
        log,
    ) -> str:
        stats = batcher.stats
        return (
            f"Sync completed. {mapping.root_node_type.label} nodes: {extraction.parents}, "
            f"{mapping.hierarchy_node_type.label} nodes: {walk.nodes}, "
            f"edges: {extraction.children + walk.edges}, "
            f"operations: {stats.executed}/{stats.executed + stats.failed} in {stats.batches} batches, "
            f"warnings: {log.warnings}, branch failures: {walk.branch_failures}."
        )
