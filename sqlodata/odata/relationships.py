"""
sqlodata.odata.relationships - Navigation edge discovery
=========================================================

Finds the navigation properties between collections of a group:

- declared references from the collection configuration
- formal foreign keys read from ``duckdb_constraints()``
- naming heuristics: a ``customer_id`` column points at ``customers.id``

Every ``belongs_to`` edge gets a reciprocal ``has_many`` edge on the
target table. Discovery failures degrade to an empty edge set.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple
import logging
import threading
import time

from sqlodata.core.collections import Collection, CollectionRegistry
from sqlodata.core.connection import DuckDBEngine
from sqlodata.core.errors import ODataError
from sqlodata.odata.naming import (
    belongs_to_name,
    has_many_name,
    pluralize,
    singularize,
    strip_schema,
)
from sqlodata.odata.schema_cache import simple_table_name

logger = logging.getLogger("sqlodata.odata")

BELONGS_TO = "belongs_to"
HAS_MANY = "has_many"


@dataclass(frozen=True)
class Relationship:
    """
    A directed navigation edge.

    The join condition is always ``source.source_column =
    target.target_column``; for ``has_many`` edges the foreign key lives on
    the target side.

    Attributes
    ----------
    kind : str
        "belongs_to" or "has_many"
    name : str
        Navigation property name, e.g. "Customer" or "Purchases"
    source_table : str
        Unqualified table the edge starts from
    source_column : str
        Join column on the source side
    target_table : str
        Target table, possibly schema qualified
    target_column : str
        Join column on the target side
    declared : bool
        Comes from configuration rather than discovery
    """
    kind: str
    name: str
    source_table: str
    source_column: str
    target_table: str
    target_column: str
    declared: bool = False

    @property
    def is_collection(self) -> bool:
        return self.kind == HAS_MANY

    @property
    def target_name(self) -> str:
        return strip_schema(self.target_table)

    def qualified_target(self, group: str) -> str:
        """Target table qualified with the group schema unless already qualified."""
        return self.target_table if "." in self.target_table else f"{group}.{self.target_table}"

    def matches(self, nav_prop: str) -> bool:
        """Case-insensitive match on the property name or the bare target table."""
        wanted = nav_prop.strip().lower()
        return wanted in (self.name.lower(), self.target_name.lower())

    def reverse(self) -> "Relationship":
        """The reciprocal ``has_many`` edge of a ``belongs_to`` edge."""
        return Relationship(
            kind=HAS_MANY,
            name=has_many_name(self.source_table),
            source_table=self.target_name,
            source_column=self.target_column,
            target_table=self.source_table,
            target_column=self.source_column,
            declared=self.declared,
        )


@dataclass
class RelationshipSet:
    """Discovered edges of one schema."""
    forward: List[Relationship]
    reverse: List[Relationship]

    @classmethod
    def empty(cls) -> "RelationshipSet":
        return cls(forward=[], reverse=[])

    def for_table(self, table: str) -> List[Relationship]:
        return [r for r in self.forward + self.reverse if r.source_table == table]


def source_table(collection: Collection) -> str:
    """
    Unqualified table a collection reads from.

    ``SELECT * FROM sales_test.customers`` gives ``customers``; any other
    query is keyed by the collection name.
    """
    table = simple_table_name(collection.query)
    if table is not None:
        return strip_schema(table)
    return collection.name


def forward_edge(table: str, column: str, target_table: str, target_column: str,
                 declared: bool = False) -> Relationship:
    return Relationship(
        kind=BELONGS_TO,
        name=belongs_to_name(target_table),
        source_table=table,
        source_column=column,
        target_table=target_table,
        target_column=target_column,
        declared=declared,
    )


def infer_target_table(column: str, known_tables: List[str]) -> Optional[str]:
    """
    Guess the table a ``<x>_id`` column points at.

    Tries ``x``, its plural and its singular, in that order.
    """
    if not column.endswith("_id") or column == "id":
        return None
    base = column[: -len("_id")]
    if not base:
        return None
    for candidate in (base, pluralize(base), singularize(base)):
        if candidate in known_tables:
            return candidate
    return None


def _with_reverse(forward: List[Relationship]) -> RelationshipSet:
    return RelationshipSet(forward=forward, reverse=[r.reverse() for r in forward])


def discover_formal(engine: DuckDBEngine, schema: Optional[str]) -> RelationshipSet:
    forward = [
        forward_edge(table, col, ref_table, ref_col)
        for table, col, ref_table, ref_col in engine.foreign_keys(schema)
    ]
    return _with_reverse(forward)


def discover_heuristic(engine: DuckDBEngine, schema: Optional[str]) -> RelationshipSet:
    listing = engine.tables(schema)
    tables = [t for _, t in listing]
    columns: Dict[str, List[str]] = {}
    for s, t in listing:
        columns[t] = [name for name, _ in engine.describe(f"{s}.{t}")]

    forward = []
    for table in tables:
        for col in columns.get(table, []):
            target = infer_target_table(col, tables)
            if target is not None:
                forward.append(forward_edge(table, col, target, "id"))
    return _with_reverse(forward)


def discover(engine: DuckDBEngine, schema: Optional[str] = None) -> RelationshipSet:
    """
    Discover the edges between the tables of a schema.

    Formal foreign keys win; the naming heuristic is only used when the
    schema declares none.

    Parameters
    ----------
    engine : DuckDBEngine
        Engine to introspect
    schema : str, optional
        Schema to restrict discovery to

    Returns
    -------
    RelationshipSet
        Empty if introspection fails
    """
    try:
        found = discover_formal(engine, schema)
        if found.forward:
            return found
        return discover_heuristic(engine, schema)
    except ODataError as e:
        logger.warning(f"discover: relationship discovery failed schema={schema}: {e}")
        return RelationshipSet.empty()


class RelationshipIndex:
    """
    Navigation edges per collection, combining configuration and discovery.

    Discovery results are cached per group for ``ttl`` seconds.

    Parameters
    ----------
    engine : DuckDBEngine
        Engine to introspect
    registry : CollectionRegistry
        Source of declared references
    ttl : float
        Discovery cache lifetime in seconds

    Examples
    --------
    >>> index = RelationshipIndex(engine, registry)
    >>> index.resolve(registry.get("sales_test", "purchases"), "Customer")
    Relationship(kind='belongs_to', name='Customer', ...)
    """

    def __init__(self, engine: DuckDBEngine, registry: CollectionRegistry, ttl: float = 300.0):
        self.engine = engine
        self.registry = registry
        self.ttl = ttl
        self._discovered: Dict[str, Tuple[float, RelationshipSet]] = {}
        self._lock = threading.Lock()

    def discovered(self, group: str) -> RelationshipSet:
        now = time.monotonic()
        entry = self._discovered.get(group)
        if entry is not None and now - entry[0] < self.ttl:
            return entry[1]
        found = discover(self.engine, group)
        with self._lock:
            self._discovered[group] = (now, found)
        return found

    def invalidate(self, group: Optional[str] = None) -> None:
        with self._lock:
            if group is None:
                self._discovered.clear()
            else:
                self._discovered.pop(group, None)

    def declared(self, collection: Collection) -> List[Relationship]:
        """Edges declared on this collection plus the reverse of references into it."""
        table = source_table(collection)
        edges = []
        for ref in collection.references:
            target, col = ref.target
            edges.append(forward_edge(table, ref.col, target, col, declared=True))

        for other in self.registry.collections(collection.group):
            if other.name == collection.name:
                continue
            other_table = source_table(other)
            for ref in other.references:
                target, col = ref.target
                if strip_schema(target) in (table, collection.name):
                    edge = forward_edge(other_table, ref.col, target, col, declared=True)
                    edges.append(replace(edge.reverse(), source_table=table))
        return edges

    def edges(self, collection: Collection) -> List[Relationship]:
        """Every edge for a collection, declared ones first, unique by name."""
        table = source_table(collection)
        result: List[Relationship] = []
        seen = set()
        for edge in self.declared(collection) + self.discovered(collection.group).for_table(table):
            key = edge.name.lower()
            if key in seen:
                continue
            seen.add(key)
            result.append(edge)
        return result

    def resolve(self, collection: Collection, nav_prop: str) -> Optional[Relationship]:
        """Find the edge a navigation property name refers to, or None."""
        for edge in self.edges(collection):
            if edge.matches(nav_prop):
                return edge
        return None
