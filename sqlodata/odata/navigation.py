"""
sqlodata.odata.navigation - Key-based navigation
=================================================

Resolves requests of the form ``/group/purchases(7)/Customer``: the entity
with key 7 is looked up in ``purchases`` and the related rows are read
through the navigation edge with an inner join.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple
import re

from sqlodata.core.collections import Collection
from sqlodata.core.errors import BadRequestError
from sqlodata.odata.filter import quote_string
from sqlodata.odata.relationships import Relationship

ENTITY_KEY = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\(([^)]+)\)$")
_NUMERIC_KEY = re.compile(r"^-?\d+(\.\d+)?$")


def parse_collection_and_key(segment: str) -> Tuple[str, str]:
    """
    Split a ``collection(key)`` path segment.

    Raises
    ------
    BadRequestError
        If the segment is not of that form

    Examples
    --------
    >>> parse_collection_and_key("customers(1)")
    ('customers', '1')
    >>> parse_collection_and_key("customers('abc')")
    ('customers', "'abc'")
    """
    m = ENTITY_KEY.match(segment)
    if not m:
        raise BadRequestError(f"Invalid entity key syntax: '{segment}'")
    return m.group(1), m.group(2).strip()


def is_entity_segment(segment: str) -> bool:
    """True when the segment addresses an entity by key; the key may still be malformed."""
    return "(" in segment or ")" in segment


def key_literal(key: str) -> str:
    """
    SQL literal for an entity key.

    Numbers pass through, quoted keys keep their (re-escaped) content,
    anything else becomes a string literal.

    >>> key_literal("42")
    '42'
    >>> key_literal("'O''Brien'")
    "'O''Brien'"
    >>> key_literal("abc")
    "'abc'"
    """
    key = key.strip()
    if _NUMERIC_KEY.match(key):
        return key
    if len(key) >= 2 and key.startswith("'") and key.endswith("'"):
        return quote_string(key[1:-1].replace("''", "'"))
    return quote_string(key)


def key_column(collection: Collection) -> str:
    """Declared primary key column, ``id`` when none is declared."""
    return collection.primary_key[0] if collection.primary_key else "id"


@dataclass(frozen=True)
class NavigationQuery:
    """SQL for one key-based navigation request."""
    sql: str
    relationship: Relationship

    @property
    def context_set(self) -> str:
        return self.relationship.name.lower()


def build_navigation_sql(collection: Collection, key: str, edge: Relationship) -> NavigationQuery:
    """
    Inner join from the keyed source entity to the navigation target.

    The related row must exist; an absent one yields no rows. For
    ``purchases(1)/Customer`` this reads::

        SELECT target.* FROM sales_test.customers AS target
        INNER JOIN (SELECT * FROM sales_test.purchases) AS source
        ON target.id = source.customer_id WHERE source.id = 1
    """
    target = edge.qualified_target(collection.group)
    sql = (
        f"SELECT target.* FROM {target} AS target "
        f"INNER JOIN ({collection.query}) AS source "
        f"ON target.{edge.target_column} = source.{edge.source_column} "
        f"WHERE source.{key_column(collection)} = {key_literal(key)}"
    )
    return NavigationQuery(sql=sql, relationship=edge)


def navigation_context(base_url: str, context_set: str, single: bool) -> str:
    """Context URL of a navigation response."""
    suffix = "/$entity" if single else ""
    return f"{base_url}/$metadata#{context_set.lower()}{suffix}"

