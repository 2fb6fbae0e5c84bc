"""
sqlodata.core.connection - DuckDB engine adapter
=================================================

Thin execution layer over DuckDB. One root connection is opened per
engine; every statement runs on its own cursor so concurrent requests do
not share per-request state.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Sequence, Tuple
import logging
import re

import duckdb

from sqlodata.core.errors import ExecutionError

logger = logging.getLogger("sqlodata.core")

_FK_TEXT = re.compile(
    r"FOREIGN\s+KEY\s*\(\s*([^)]+?)\s*\)\s+REFERENCES\s+([A-Za-z0-9_.\"]+)\s*\(\s*([^)]+?)\s*\)",
    re.IGNORECASE,
)


@dataclass
class QueryResult:
    """
    Rows returned by the engine.

    Attributes
    ----------
    columns : list of str
        Column names in result order
    types : list of str
        Engine type names, aligned with ``columns``
    rows : list of tuple
        Row values, aligned with ``columns``
    """
    columns: List[str] = field(default_factory=list)
    types: List[str] = field(default_factory=list)
    rows: List[Tuple[Any, ...]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


class DuckDBEngine:
    """
    SQL execution engine backed by DuckDB.

    Parameters
    ----------
    database : str
        Database file path or ":memory:"
    read_only : bool
        Open the database file read-only. Ignored for in-memory databases.
    connection : duckdb.DuckDBPyConnection, optional
        Use an already open connection instead of connecting

    Examples
    --------
    >>> engine = DuckDBEngine("sales.duckdb", read_only=True)
    >>> result = engine.execute("SELECT * FROM sales_test.customers")
    >>> result.columns
    ['id', 'name', 'email']
    >>> engine.describe("sales_test.customers")
    [('id', 'INTEGER'), ('name', 'VARCHAR'), ('email', 'VARCHAR')]
    """

    def __init__(
        self,
        database: str = ":memory:",
        *,
        read_only: bool = False,
        connection: Optional["duckdb.DuckDBPyConnection"] = None,
    ) -> None:
        self.database = database
        if connection is not None:
            self._conn = connection
        else:
            in_memory = database in ("", ":memory:")
            self._conn = duckdb.connect(database, read_only=read_only and not in_memory)
        logger.info(f"engine: opened database={database}")

    @contextmanager
    def cursor(self) -> Iterator["duckdb.DuckDBPyConnection"]:
        """Yield a dedicated cursor, closed on exit."""
        cur = self._conn.cursor()
        try:
            yield cur
        finally:
            cur.close()

    def run(self, cur, sql: str, params: Optional[Sequence[Any]] = None) -> QueryResult:
        """
        Run a statement on an open cursor and fetch every row.

        Raises
        ------
        ExecutionError
            The engine rejected the statement
        """
        logger.debug(f"execute: sql={sql}")
        try:
            cur.execute(sql, list(params) if params else None)
            description = cur.description or []
            rows = cur.fetchall() if description else []
        except duckdb.Error as e:
            raise ExecutionError(str(e), sql) from e
        return QueryResult(
            columns=[d[0] for d in description],
            types=[str(d[1]) for d in description],
            rows=[tuple(r) for r in rows],
        )

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> QueryResult:
        """Run a statement on a fresh cursor."""
        with self.cursor() as cur:
            return self.run(cur, sql, params)

    def describe(self, relation: str) -> List[Tuple[str, str]]:
        """Return ``(column, type)`` pairs for a table or view."""
        result = self.execute(f"DESCRIBE {relation}")
        return [(str(r[0]), str(r[1])) for r in result.rows]

    def tables(self, schema: Optional[str] = None) -> List[Tuple[str, str]]:
        """List ``(schema, table)`` pairs, views included."""
        sql = (
            "SELECT table_schema, table_name FROM information_schema.tables "
            "WHERE table_schema NOT IN ('information_schema', 'pg_catalog')"
        )
        params: List[Any] = []
        if schema:
            sql += " AND table_schema = ?"
            params.append(schema)
        sql += " ORDER BY table_schema, table_name"
        return [(r[0], r[1]) for r in self.execute(sql, params).rows]

    def foreign_keys(self, schema: Optional[str] = None) -> List[Tuple[str, str, str, str]]:
        """
        Read declared foreign keys from ``duckdb_constraints()``.

        Returns
        -------
        list of tuple
            ``(table, column, referenced_table, referenced_column)``
        """
        sql = (
            "SELECT table_name, constraint_text FROM duckdb_constraints() "
            "WHERE constraint_type = 'FOREIGN KEY'"
        )
        params: List[Any] = []
        if schema:
            sql += " AND schema_name = ?"
            params.append(schema)
        found = []
        for table, text in self.execute(sql, params).rows:
            m = _FK_TEXT.search(text or "")
            if not m:
                continue
            cols = [c.strip().strip('"') for c in m.group(1).split(",")]
            ref_cols = [c.strip().strip('"') for c in m.group(3).split(",")]
            # composite keys cannot become a single navigation edge
            if len(cols) != 1 or len(ref_cols) != 1:
                continue
            ref_table = m.group(2).replace('"', "").split(".")[-1]
            found.append((table, cols[0], ref_table, ref_cols[0]))
        return found

    def close(self) -> None:
        """Close the root connection."""
        self._conn.close()

    def __enter__(self) -> "DuckDBEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
