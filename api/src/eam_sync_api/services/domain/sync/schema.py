#!/usr/bin/env python3
"""Graph schema preparation: indexes on each node type's MERGE key."""

import logging
from typing import Any

from neo4j.exceptions import ClientError, DriverError, Neo4jError

from .mapping import MappingSpec
from .operations import quote_identifier

logger = logging.getLogger(__name__)


def index_name(label: str, property_name: str) -> str:
    safe = "".join(ch if ch.isalnum() else "_" for ch in f"{label}_{property_name}")
    return f"sync_{safe.lower()}"


def index_statement(label: str, property_name: str) -> str:
    return (
        f"CREATE INDEX {quote_identifier(index_name(label, property_name))} IF NOT EXISTS "
        f"FOR (n:{quote_identifier(label)}) ON (n.{quote_identifier(property_name)})"
    )


class GraphSchemaPreparer:
    """Creates the indexes MERGE statements rely on."""

    def __init__(self, session, log):
        self.session = session
        self.log = log

    def prepare(self, mapping: MappingSpec) -> dict[str, Any]:
        """Create (if not existing) one index per (label, primary key).

        Failures are logged as warnings; the run continues without the index.
        """
        results = {"indexes_ensured": [], "indexes_failed": []}
        seen = set()

        for node_type in mapping.node_types.values():
            target = (node_type.label, node_type.primary_key_property)
            if target in seen:
                continue
            seen.add(target)

            label, prop = target
            try:
                self.session.run(index_statement(label, prop)).consume()
                results["indexes_ensured"].append(f"{label}.{prop}")
                logger.debug(f"Index ensured on {label}.{prop}")
            except ClientError as e:
                if "equivalent index already exists" in str(e).lower():
                    results["indexes_ensured"].append(f"{label}.{prop}")
                    continue
                results["indexes_failed"].append(f"{label}.{prop}: {e}")
                self.log.warn(f"Failed to create index on {label}.{prop}: {e}")
            except (Neo4jError, DriverError) as e:
                results["indexes_failed"].append(f"{label}.{prop}: {e}")
                self.log.warn(f"Failed to create index on {label}.{prop}: {e}")

        return results
