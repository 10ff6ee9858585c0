"""
Database utilities for the score analysis framework.

Thin helpers around DuckDB: query execution returning dict rows and a
transaction context manager for batched writes.
"""

from typing import Any, Dict, List, Optional, Tuple, Union

import duckdb
from loguru import logger


def execute_query(
    conn: duckdb.DuckDBPyConnection,
    query: str,
    params: Optional[Union[Tuple[Any, ...], Dict[str, Any], List[Any]]] = None,
    fetch: bool = True,
) -> List[Dict[str, Any]]:
    """
    Execute a SQL query with parameters and return the results.

    Args:
        conn: DuckDB connection.
        query: SQL query string.
        params: Query parameters.
        fetch: Whether to fetch and return results. Set to False for INSERT, UPDATE, etc.

    Returns:
        List of dictionaries with query results.
    """
    try:
        cursor = conn.cursor()
        if params:
            cursor.execute(query, params)
        else:
            cursor.execute(query)

        if not fetch:
            return []

        column_names = [desc[0] for desc in cursor.description]
        return [dict(zip(column_names, row)) for row in cursor.fetchall()]
    except duckdb.Error as e:
        logger.error(f"Error executing query: {e}")
        logger.debug(f"Query: {query}")
        logger.debug(f"Params: {params}")
        raise


class transaction:
    """
    Context manager for DuckDB transactions.

    Commits on a clean exit and rolls back when the block raises.

    Example:
        with transaction(conn) as txn:
            txn.execute("INSERT INTO ...", (...))
    """

    def __init__(self, conn: duckdb.DuckDBPyConnection):
        self.conn = conn

    def __enter__(self) -> duckdb.DuckDBPyConnection:
        self.conn.begin()
        return self.conn

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is None:
            self.conn.commit()
        else:
            self.conn.rollback()
        return False
