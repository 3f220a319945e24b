"""
Relational hierarchy to graph synchronization.

- mapping: mapping configuration model and YAML parser
- operations: typed MERGE operations and value serialization
- extractor: root entity extraction
- walker: hierarchy traversal
- batcher: best-effort batched graph writes
- schema: MERGE key index preparation
- engine: run orchestration
"""

from .batcher import BatchStats, GraphMutationBatcher
from .errors import (
    ConfigError,
    FatalConnectionError,
    GraphWriteError,
    RunInProgressError,
    SourceReadError,
    SyncError,
)
from .extractor import ExtractionResult, RootEntityExtractor
from .mapping import DEFAULT_MAPPING_TEMPLATE, MappingSpec, parse_mapping
from .operations import MergeEdge, MergeNode, serialize_value
from .walker import HierarchyWalker, WalkStats

__all__ = [
    'BatchStats',
    'GraphMutationBatcher',
    'ConfigError',
    'FatalConnectionError',
    'GraphWriteError',
    'RunInProgressError',
    'SourceReadError',
    'SyncError',
    'ExtractionResult',
    'RootEntityExtractor',
    'DEFAULT_MAPPING_TEMPLATE',
    'MappingSpec',
    'parse_mapping',
    'MergeEdge',
    'MergeNode',
    'serialize_value',
    'HierarchyWalker',
    'WalkStats',
]
