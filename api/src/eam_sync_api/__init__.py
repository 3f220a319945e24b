"""EAM to Neo4j synchronization service."""
