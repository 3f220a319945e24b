#!/usr/bin/env python3
"""
Neo4j Database Client

A low-level client wrapper for Neo4j graph database operations.
Handles connection management, sessions for batched writes and simple
query execution.

This client is pure infrastructure - it contains no business logic.
Use services layer for business logic that uses this client.
"""

import logging
import os

from neo4j import GraphDatabase
from neo4j.exceptions import ServiceUnavailable, SessionExpired

from ..services.domain.sync.errors import FatalConnectionError

logger = logging.getLogger(__name__)


class Neo4jClient:
    """
    Neo4j database client with connection pooling.

    Provides methods for:
    - Executing Cypher queries
    - Opening sessions used as graph writers by the sync engine
    - Retrieving database statistics

    Example:
        ```python
        client = Neo4jClient()
        with client.session() as session:
            with session.begin_transaction() as tx:
                tx.run("MERGE (n:Unit {unitId: $key})", {"key": "U1"})
                tx.commit()
        client.close()
        ```

    Environment Variables:
        - NEO4J_URI: Database connection URI (default: bolt://localhost:7687)
        - NEO4J_USER: Authentication username (default: neo4j)
        - NEO4J_PASSWORD: Authentication password (default: password)
        - NEO4J_DATABASE: Optional database name (default: server default)
    """

    def __init__(self, uri: str = None, user: str = None, password: str = None, database: str = None):
        """
        Initialize Neo4j client with connection parameters.

        Args:
            uri: Database connection URI. If None, reads from NEO4J_URI env var.
            user: Authentication username. If None, reads from NEO4J_USER env var.
            password: Authentication password. If None, reads from NEO4J_PASSWORD env var.
            database: Database name. If None, reads from NEO4J_DATABASE env var.
        """
        self.uri = uri or os.getenv("NEO4J_URI", "bolt://localhost:7687")
        self.user = user or os.getenv("NEO4J_USER", "neo4j")
        self.password = password or os.getenv("NEO4J_PASSWORD", "password")
        self.database = database or os.getenv("NEO4J_DATABASE") or None
        self.driver = GraphDatabase.driver(self.uri, auth=(self.user, self.password))

    def session(self):
        """Open a driver session. Use as a context manager."""
        if self.database:
            return self.driver.session(database=self.database)
        return self.driver.session()

    def verify_connectivity(self) -> None:
        """
        Check that the graph store can be reached.

        Raises:
            FatalConnectionError: If the server is unavailable
        """
        try:
            self.driver.verify_connectivity()
        except (ServiceUnavailable, SessionExpired) as e:
            raise FatalConnectionError(f"Cannot connect to Neo4j at {self.uri}: {e}") from e

    def query(self, cypher_query: str, parameters: dict | None = None) -> list[dict]:
        """
        Execute a Cypher query and return raw record data.

        Args:
            cypher_query: Cypher query string to execute
            parameters: Optional query parameters for parameterized queries

        Returns:
            List of dictionaries containing query result records.

        Raises:
            neo4j.exceptions.CypherSyntaxError: If query syntax is invalid
            neo4j.exceptions.ClientError: If query execution fails
        """
        with self.session() as session:
            result = session.run(cypher_query, parameters or {})
            return [record.data() for record in result]

    def get_stats(self) -> dict[str, int]:
        """
        Get database statistics (node and relationship counts).

        Note:
            This performs full database scans and can be slow on large databases.
        """
        with self.session() as session:
            node_count = session.run("MATCH (n) RETURN count(n) as count").single()["count"]
            rel_count = session.run("MATCH ()-[r]->() RETURN count(r) as count").single()["count"]

            return {
                "nodeCount": node_count,
                "relationshipCount": rel_count
            }

    def close(self):
        """Close the driver connection and release resources."""
        if self.driver:
            self.driver.close()
