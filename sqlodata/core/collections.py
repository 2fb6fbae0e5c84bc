"""
sqlodata.core.collections - Collection registry
================================================

Collections are named SQL relations exposed as OData entity sets. They are
grouped (one group per URL prefix / service root) and loaded once from a
YAML file at startup.

Example collections.yml::

    collection_groups:
      - name: sales_test
        collections:
          - name: customers
            table: sales_test.customers
            primary_key: [id]
          - name: purchases
            query: "SELECT * FROM sales_test.purchases"
            references:
              - col: customer_id
                ref: customers(id)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
import logging
import re

import yaml

from sqlodata.core.errors import NotFoundError

logger = logging.getLogger("sqlodata.core")

# "customers(id)" or "sales_test.customers(id)"
REFERENCE_SPEC = re.compile(r"^([A-Za-z_][A-Za-z0-9_.]*)\(([A-Za-z_][A-Za-z0-9_]*)\)$")
IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class Reference:
    """
    Declared foreign key edge from a collection column to another table.

    Attributes
    ----------
    col : str
        Source column holding the foreign key
    ref : str
        Target specification, ``table(column)`` or ``schema.table(column)``
    """
    col: str
    ref: str

    @property
    def target(self) -> Tuple[str, str]:
        """``(table, column)`` parsed from ``ref``."""
        m = REFERENCE_SPEC.match(self.ref.strip())
        if not m:
            raise ValueError(
                f"Invalid reference '{self.ref}'. Expected 'table(column)' "
                "or 'schema.table(column)'"
            )
        return m.group(1), m.group(2)


@dataclass(frozen=True)
class Collection:
    """
    One entity set.

    Attributes
    ----------
    group : str
        Collection group (also the DuckDB schema holding its tables)
    name : str
        Entity set name
    query : str
        Base SQL producing the collection rows
    materialized : bool
        Whether the data was loaded into a table of its own
    primary_key : tuple of str
        Declared key columns (may be empty)
    references : tuple of Reference
        Declared navigation edges
    """
    group: str
    name: str
    query: str
    materialized: bool = False
    primary_key: Tuple[str, ...] = ()
    references: Tuple[Reference, ...] = ()


def _build_collection(group: str, raw: Dict[str, Any]) -> Collection:
    name = raw.get("name")
    if not name or not IDENTIFIER.match(str(name)):
        raise ValueError(f"Invalid collection name in group '{group}': {name!r}")

    query = raw.get("query")
    if not query:
        table = raw.get("table") or f"{group}.{name}"
        query = f"SELECT * FROM {table}"

    pk = raw.get("primary_key") or ()
    if isinstance(pk, str):
        pk = (pk,)

    refs = []
    for r in raw.get("references") or []:
        ref = Reference(col=str(r["col"]), ref=str(r["ref"]))
        ref.target  # validates the reference
        refs.append(ref)

    return Collection(
        group=group,
        name=str(name),
        query=str(query).strip(),
        materialized=bool(raw.get("materialized", False)),
        primary_key=tuple(str(c) for c in pk),
        references=tuple(refs),
    )


class CollectionRegistry:
    """
    In-memory registry of collections, keyed by ``(group, name)``.

    Populated at startup and read-only while serving.

    Examples
    --------
    >>> registry = CollectionRegistry.from_yaml("config/collections.yml")
    >>> registry.groups()
    ['sales_test']
    >>> registry.get("sales_test", "customers").query
    'SELECT * FROM sales_test.customers'
    """

    def __init__(self, collections: Optional[List[Collection]] = None) -> None:
        self._collections: Dict[Tuple[str, str], Collection] = {}
        for c in collections or []:
            self.register(c)

    def register(self, collection: Collection) -> None:
        self._collections[(collection.group, collection.name)] = collection

    def get(self, group: str, name: str) -> Collection:
        """
        Look up a collection.

        Raises
        ------
        NotFoundError
            If no such collection exists in the group
        """
        collection = self.find(group, name)
        if collection is None:
            raise NotFoundError(f"Collection '{name}' not found")
        return collection

    def find(self, group: str, name: str) -> Optional[Collection]:
        """Collection by key, None when absent."""
        return self._collections.get((group, name))

    def has_group(self, group: str) -> bool:
        return any(g == group for g, _ in self._collections)

    def groups(self) -> List[str]:
        seen: List[str] = []
        for g, _ in self._collections:
            if g not in seen:
                seen.append(g)
        return seen

    def collections(self, group: str) -> List[Collection]:
        return [c for (g, _), c in self._collections.items() if g == group]

    def all(self) -> List[Collection]:
        return list(self._collections.values())

    def __len__(self) -> int:
        return len(self._collections)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CollectionRegistry":
        """Build a registry from the parsed ``collection_groups`` document."""
        if not isinstance(data, dict) or "collection_groups" not in data:
            raise ValueError("Invalid collections config - missing 'collection_groups' key")

        registry = cls()
        for grp in data["collection_groups"] or []:
            group = grp.get("name")
            if not group or not IDENTIFIER.match(str(group)):
                raise ValueError(f"Invalid collection group name: {group!r}")
            for raw in grp.get("collections") or []:
                registry.register(_build_collection(str(group), raw))
        return registry

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "CollectionRegistry":
        """Load a registry from a YAML file."""
        path = Path(path)
        with path.open() as f:
            data = yaml.safe_load(f) or {}
        registry = cls.from_dict(data)
        logger.info(
            f"collections: loaded path={path}, groups={len(registry.groups())}, "
            f"collections={len(registry)}"
        )
        return registry
