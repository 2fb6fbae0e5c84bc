"""
sqlodata.odata.schema_cache - Collection schema introspection cache
====================================================================

Column names and types for every collection, cached with a TTL.

Collections defined as ``SELECT * FROM <table>`` are introspected with a
plain ``DESCRIBE``; any other query is wrapped in a temporary view that is
dropped again on every exit path.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
import logging
import re
import threading
import time

from sqlodata.core.collections import Collection, CollectionRegistry
from sqlodata.core.connection import DuckDBEngine
from sqlodata.core.errors import ODataError

logger = logging.getLogger("sqlodata.odata")

DEFAULT_TTL = 300.0

_SIMPLE_TABLE = re.compile(
    r"^select \* from ([a-z_][a-z0-9_.]*)\s*$",
    re.IGNORECASE,
)

Column = Tuple[str, str]


@dataclass(frozen=True)
class SchemaSnapshot:
    """Ordered ``(name, type)`` columns and the time they were read."""
    columns: Tuple[Column, ...]
    inserted_at: float

    @property
    def names(self) -> List[str]:
        return [c[0] for c in self.columns]



def simple_table_name(query: str) -> Optional[str]:
    """
    Table name of a bare ``SELECT * FROM <table>`` query, else None.

    >>> simple_table_name("select * from sales_test.customers")
    'sales_test.customers'
    >>> simple_table_name("SELECT id FROM customers") is None
    True
    """
    normalized = " ".join(query.strip().rstrip(";").split())
    m = _SIMPLE_TABLE.match(normalized)
    return m.group(1) if m else None


def temp_view_name(group: str, collection: str) -> str:
    return f"temp_{group}_{collection}_schema"


def fetch_schema(engine: DuckDBEngine, group: str, collection: str, query: str) -> List[Column]:
    """
    Introspect the columns a query produces.

    Raises
    ------
    ExecutionError
        If the engine cannot describe the query
    """
    table = simple_table_name(query)
    if table is not None:
        return engine.describe(table)

    view = temp_view_name(group, collection)
    with engine.cursor() as cur:
        try:
            engine.run(cur, f"CREATE OR REPLACE TEMP VIEW {view} AS {query}")
            result = engine.run(cur, f"DESCRIBE {view}")
        finally:
            try:
                engine.run(cur, f"DROP VIEW IF EXISTS {view}")
            except ODataError as e:
                logger.warning(f"fetch_schema: could not drop view={view}: {e}")
    return [(str(r[0]), str(r[1])) for r in result.rows]


class SchemaCache:
    """
    TTL cache of collection schemas keyed by ``(group, collection)``.

    Reads never block each other; writes replace a single key atomically.
    Concurrent misses on the same key may both fetch, and the last write
    wins.

    Parameters
    ----------
    engine : DuckDBEngine
        Engine used to introspect on a miss
    registry : CollectionRegistry
        Where collection queries are looked up
    ttl : float
        Entry lifetime in seconds
    clock : callable
        Monotonic time source

    Examples
    --------
    >>> cache = SchemaCache(engine, registry, ttl=300)
    >>> cache.column_names("sales_test", "customers")
    ['id', 'name', 'email']
    >>> cache.invalidate("sales_test", "customers")
    """

    def __init__(
        self,
        engine: DuckDBEngine,
        registry: CollectionRegistry,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.engine = engine
        self.registry = registry
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[Tuple[str, str], SchemaSnapshot] = {}
        self._lock = threading.Lock()

    def _fresh(self, snapshot: Optional[SchemaSnapshot]) -> bool:
        return snapshot is not None and (self._clock() - snapshot.inserted_at) < self.ttl

    def get(self, group: str, collection: str) -> SchemaSnapshot:
        """
        Cached schema of a collection, fetched on a miss or after expiry.

        Raises
        ------
        NotFoundError
            Unknown collection
        ExecutionError
            Introspection failed
        """
        key = (group, collection)
        snapshot = self._entries.get(key)
        if self._fresh(snapshot):
            return snapshot

        config = self.registry.get(group, collection)
        columns = fetch_schema(self.engine, group, collection, config.query)
        snapshot = SchemaSnapshot(columns=tuple(columns), inserted_at=self._clock())
        with self._lock:
            self._entries[key] = snapshot
        logger.debug(f"schema_cache: stored group={group}, collection={collection}, columns={len(columns)}")
        return snapshot

    def columns(self, group: str, collection: str) -> List[Column]:
        return list(self.get(group, collection).columns)

    def column_names(self, group: str, collection: str) -> List[str]:
        return self.get(group, collection).names

    def table_columns(self, table: str) -> List[str]:
        """Column names of a plain table, cached under the ``$table`` group."""
        key = ("$table", table)
        snapshot = self._entries.get(key)
        if not self._fresh(snapshot):
            cols = self.engine.describe(table)
            snapshot = SchemaSnapshot(columns=tuple(cols), inserted_at=self._clock())
            with self._lock:
                self._entries[key] = snapshot
        return snapshot.names

    def invalidate(self, group: str, collection: str) -> None:
        with self._lock:
            self._entries.pop((group, collection), None)

    def invalidate_all(self) -> None:
        with self._lock:
            self._entries.clear()

    def warm(self, collections: Optional[List[Collection]] = None) -> int:
        """
        Fetch every collection's schema, skipping failures.

        Returns
        -------
        int
            Number of collections cached
        """
        warmed = 0
        for c in collections if collections is not None else self.registry.all():
            try:
                self.get(c.group, c.name)
                warmed += 1
            except ODataError as e:
                logger.warning(f"warm: skipped group={c.group}, collection={c.name}: {e}")
        logger.info(f"warm: cached schemas={warmed}")
        return warmed

    def warm_in_background(self) -> threading.Thread:
        """Run :meth:`warm` on a daemon thread."""
        t = threading.Thread(target=self.warm, name="schema-cache-warm", daemon=True)
        t.start()
        return t

    def __len__(self) -> int:
        return len(self._entries)
