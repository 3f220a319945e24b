#!/usr/bin/env python3
"""
Relational Source Client

A low-level reader over SQLAlchemy for the relational asset source.
Rows are streamed with forward-only cursors and returned as dictionaries
keyed by upper-case column names, so mapping columns match regardless of
how the database reports identifier case.

This client is pure infrastructure - it contains no business logic.
Table and column names must be validated by the caller; values are always
bound as parameters.
"""

import logging
from collections.abc import Iterator
from typing import Any, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..services.domain.sync.errors import FatalConnectionError, SourceReadError

logger = logging.getLogger(__name__)


def normalize_row(row: Any) -> dict[str, Any]:
    """Return a row mapping with upper-case column names."""
    return {str(key).upper(): value for key, value in row.items()}


class SqlSourceReader:
    """
    Read-only access to one relational source.

    Example:
        ```python
        reader = SqlSourceReader.connect("oracle+oracledb://eam:secret@db:1521/?service_name=EAM")
        for row in reader.query("SELECT * FROM EQJZ"):
            print(row["INDOCNO"])
        device = reader.query_by_key("EQTREE", "SFCODE", "D1")
        reader.close()
        ```
    """

    def __init__(self, engine: Engine, owns_engine: bool = False):
        self.engine = engine
        self.owns_engine = owns_engine

    @classmethod
    def connect(cls, url: str, **engine_options) -> "SqlSourceReader":
        """Create a reader and verify the source can be opened.

        Raises:
            FatalConnectionError: If the engine cannot be created or the
                source does not answer a trivial query
        """
        try:
            engine = create_engine(url, **engine_options)
        except (SQLAlchemyError, ValueError) as e:
            raise FatalConnectionError(f"Invalid source URL: {e}") from e

        reader = cls(engine, owns_engine=True)
        reader.check_connection()
        return reader

    def check_connection(self) -> None:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1")).scalar()
        except SQLAlchemyError as e:
            raise FatalConnectionError(f"Cannot open relational source: {e}") from e

    def query(self, sql: str, parameters: Optional[dict[str, Any]] = None) -> Iterator[dict[str, Any]]:
        """Stream the rows of a query one at a time.

        The connection stays open until the iterator is exhausted or closed.

        Raises:
            SourceReadError: If the query fails
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execution_options(stream_results=True).execute(text(sql), parameters or {})
                for row in result.mappings():
                    yield normalize_row(row)
        except SQLAlchemyError as e:
            raise SourceReadError(f"Query failed: {sql}: {e}") from e

    def query_by_key(self, table: str, key_field: str, key: Any) -> Optional[dict[str, Any]]:
        """Fetch the first row of table whose key_field equals key, or None."""
        sql = f"SELECT * FROM {table} WHERE {key_field} = :key"
        try:
            with self.engine.connect() as conn:
                row = conn.execute(text(sql), {"key": key}).mappings().first()
        except SQLAlchemyError as e:
            raise SourceReadError(f"Lookup of {table}.{key_field}={key!r} failed: {e}") from e
        return normalize_row(row) if row is not None else None

    def query_children(self, table: str, parent_link_field: str, parent_link_value: Any) -> Iterator[dict[str, Any]]:
        """Stream every row of table whose parent_link_field equals parent_link_value."""
        sql = f"SELECT * FROM {table} WHERE {parent_link_field} = :parent"
        return self.query(sql, {"parent": parent_link_value})

    def column_names(self, table: str) -> set[str]:
        """Return the upper-case column names of a table."""
        try:
            with self.engine.connect() as conn:
                result = conn.execute(text(f"SELECT * FROM {table} WHERE 1 = 0"))
                return {str(name).upper() for name in result.keys()}
        except SQLAlchemyError as e:
            raise SourceReadError(f"Cannot inspect columns of {table}: {e}") from e

    def close(self) -> None:
        if self.owns_engine:
            self.engine.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
