"""
Client Layer

This package contains low-level client wrappers for external services.
Clients handle communication with external systems but contain no business logic.

Modules:
- neo4j_client: Neo4j graph database client (graph writer)
- sql_client: SQLAlchemy relational source reader
- s3_client: MinIO/S3 object storage client (mapping configs, source registry)
"""

from .neo4j_client import Neo4jClient
from .s3_client import create_buckets, get_json_content, get_text_content, put_json_content, upload_text
from .sql_client import SqlSourceReader

__all__ = [
    # Neo4j client
    'Neo4jClient',
    # Relational source
    'SqlSourceReader',
    # S3 client
    'create_buckets',
    'upload_text',
    'get_text_content',
    'get_json_content',
    'put_json_content',
]
