#!/usr/bin/env python3

import logging

from fastapi import HTTPException
from neo4j.exceptions import DriverError, Neo4jError

from ..clients.neo4j_client import Neo4jClient
from ..models.models import GraphStats

logger = logging.getLogger(__name__)


def handle_neo4j_stats(client: Neo4jClient) -> GraphStats:
    """Get node and relationship counts"""
    try:
        return GraphStats(**client.get_stats())
    except (Neo4jError, DriverError) as e:
        logger.error(f"Failed to get Neo4j stats: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get Neo4j stats: {str(e)}") from e
