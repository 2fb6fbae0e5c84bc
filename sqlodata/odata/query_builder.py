"""
sqlodata.odata.query_builder - OData options to SQL
====================================================

Builds the SQL for a collection request from its base query and system
query options. Stages run in a fixed order and each one wraps the SQL of
the previous stage; earlier SQL is never edited:

1. ``$expand``  - ``LEFT JOIN`` per navigation property, wrapped as ``expanded_data``;
   ``has_many`` targets are joined pre-aggregated into one list per key
2. ``$select``  - ``SELECT cols FROM (...) AS selected_data``
3. ``$filter``  - ``SELECT * FROM (...) AS filtered_data WHERE ...``
4. ``$orderby`` - ``SELECT * FROM (...) AS ordered_data ORDER BY ...``
5. paging       - ``LIMIT top + 1 OFFSET skip``
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import logging
import re

from sqlodata.core.collections import Collection
from sqlodata.core.config import ODataConfig
from sqlodata.core.errors import BadRequestError, ODataError
from sqlodata.odata import filter as odata_filter
from sqlodata.odata.filter import FilterPolicy, Unparsed, WhereFragment, quote_string
from sqlodata.odata.params import QueryOptions
from sqlodata.odata.relationships import Relationship, RelationshipIndex
from sqlodata.odata.schema_cache import SchemaCache

logger = logging.getLogger("sqlodata.odata")

ORDERBY_COLUMN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")
SELECT_COLUMN = ORDERBY_COLUMN


@dataclass(frozen=True)
class Expansion:
    """
    One expanded navigation property.

    Attributes
    ----------
    name : str
        Navigation property as requested; the related entity is nested
        under this key
    alias : str
        SQL alias of the joined table (lowercase name)
    columns : tuple of str
        Target columns
    aliases : tuple of str
        Result names of the target columns, ``{alias}_{column}`` unless
        that name is already taken by the primary entity. A ``has_many``
        expansion has the single list column ``{alias}_items``.
    relationship : Relationship
        Edge the join follows
    """
    name: str
    alias: str
    columns: Tuple[str, ...]
    aliases: Tuple[str, ...]
    relationship: Relationship

    @property
    def aliased_columns(self) -> List[str]:
        return list(self.aliases)


@dataclass
class QueryPlan:
    """
    SQL produced for a request plus what the formatter needs to shape it.

    ``expansions`` columns always trail the primary columns in the result,
    in expansion order.
    """
    sql: str
    expansions: List[Expansion] = field(default_factory=list)
    select: List[str] = field(default_factory=list)
    top: int = 0
    skip: int = 0


def split_csv(value: Optional[str]) -> List[str]:
    """Comma separated items, trimmed, blanks dropped."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


# ---------------- stages ----------------

def related_rows_sql(exp: Expansion, group: str) -> str:
    """
    One row per join key holding the related entities as a list of structs.

    Used for ``has_many`` edges so an expanded entity stays a single row.
    """
    edge = exp.relationship
    fields = ", ".join(f"{quote_string(c)}: related.{quote_ident(c)}" for c in exp.columns)
    order = f" ORDER BY related.{quote_ident(exp.columns[0])}" if exp.columns else ""
    return (
        f"SELECT related.{edge.target_column} AS join_key, "
        f"LIST({{{fields}}}{order}) AS items "
        f"FROM {edge.qualified_target(group)} AS related "
        f"GROUP BY related.{edge.target_column}"
    )


def apply_expand(sql: str, group: str, expansions: List[Expansion]) -> str:
    for exp in expansions:
        edge = exp.relationship
        alias = quote_ident(exp.alias)
        if edge.is_collection:
            [item_alias] = exp.aliased_columns
            sql = (
                f"SELECT main.*, {alias}.items AS {quote_ident(item_alias)} FROM ({sql}) AS main "
                f"LEFT JOIN ({related_rows_sql(exp, group)}) AS {alias} "
                f"ON main.{edge.source_column} = {alias}.join_key"
            )
            continue
        cols = ", ".join(
            f"{alias}.{quote_ident(c)} AS {quote_ident(a)}"
            for c, a in zip(exp.columns, exp.aliased_columns)
        )
        sql = (
            f"SELECT main.*, {cols} FROM ({sql}) AS main "
            f"LEFT JOIN {edge.qualified_target(group)} AS {alias} "
            f"ON main.{edge.source_column} = {alias}.{edge.target_column}"
        )
    if expansions:
        # later stages see one relation, not the join
        sql = f"SELECT * FROM ({sql}) AS expanded_data"
    return sql


def apply_select(sql: str, columns: List[str]) -> str:
    if not columns:
        return sql
    return f"SELECT {', '.join(columns)} FROM ({sql}) AS selected_data"


def apply_filter(sql: str, fragment: Optional[WhereFragment]) -> str:
    if fragment is None:
        return sql
    return f"SELECT * FROM ({sql}) AS filtered_data WHERE {fragment.sql}"


def parse_orderby(value: Optional[str]) -> List[str]:
    """
    ``ORDER BY`` items from ``$orderby``; invalid items are dropped.

    >>> parse_orderby("name desc, id, bad-col, age sideways")
    ['name DESC', 'id ASC']
    """
    items = []
    for token in split_csv(value):
        parts = token.split()
        if len(parts) == 1:
            column, direction = parts[0], "ASC"
        elif len(parts) == 2 and parts[1].lower() in ("asc", "desc"):
            column, direction = parts[0], parts[1].upper()
        else:
            logger.debug(f"parse_orderby: dropped token={token!r}")
            continue
        if not ORDERBY_COLUMN.match(column):
            logger.debug(f"parse_orderby: dropped column={column!r}")
            continue
        items.append(f"{column} {direction}")
    return items


def apply_orderby(sql: str, value: Optional[str]) -> str:
    items = parse_orderby(value)
    if not items:
        return sql
    return f"SELECT * FROM ({sql}) AS ordered_data ORDER BY {', '.join(items)}"


def apply_pagination(sql: str, skip: int, top: int) -> str:
    """Over-fetch by one row so the caller can tell whether more pages exist."""
    return f"SELECT * FROM ({sql}) AS paginated_data LIMIT {top + 1} OFFSET {skip}"


def resolve_filter(expr: Optional[str], policy: str) -> Optional[WhereFragment]:
    """
    Translate ``$filter`` under a failure policy.

    Raises
    ------
    BadRequestError
        The expression is unparseable and the policy is "reject"
    """
    result = odata_filter.parse(expr)
    if result is None:
        return None
    if isinstance(result, Unparsed):
        if policy == FilterPolicy.IGNORE:
            logger.warning(f"filter: ignoring unparseable $filter={result.expression!r}: {result.reason}")
            return None
        raise BadRequestError(f"Invalid $filter expression '{result.expression}': {result.reason}")
    return result


def select_columns(value: Optional[str]) -> List[str]:
    columns = split_csv(value)
    for col in columns:
        if not SELECT_COLUMN.match(col):
            raise BadRequestError(f"Invalid $select item '{col}'")
    return columns


class QueryBuilder:
    """
    Composes request SQL for the collections of a registry.

    Parameters
    ----------
    relationships : RelationshipIndex
        Resolves ``$expand`` navigation properties
    schema_cache : SchemaCache
        Supplies target table columns for expansion
    config : ODataConfig
        Filter policy

    Examples
    --------
    >>> builder = QueryBuilder(relationships, schema_cache, config)
    >>> plan = builder.build(purchases, parse_options({"$top": "2"}, config))
    >>> plan.sql
    'SELECT * FROM (SELECT * FROM sales_test.purchases) AS paginated_data LIMIT 3 OFFSET 0'
    """

    def __init__(self, relationships: RelationshipIndex, schema_cache: SchemaCache,
                 config: ODataConfig):
        self.relationships = relationships
        self.schema_cache = schema_cache
        self.config = config

    def expansions(self, collection: Collection, expand: Optional[str]) -> List[Expansion]:
        """Resolve ``$expand``; unknown navigation properties are skipped."""
        navs = split_csv(expand)
        if not navs:
            return []
        try:
            taken = {c.lower() for c in self.schema_cache.column_names(collection.group, collection.name)}
        except ODataError:
            taken = set()

        result: List[Expansion] = []
        seen = set()
        for nav in navs:
            edge = self.relationships.resolve(collection, nav)
            if edge is None:
                logger.info(f"expand: unknown navigation property={nav!r} on {collection.name}")
                continue
            if edge.name.lower() in seen:
                continue
            try:
                columns = self.schema_cache.table_columns(edge.qualified_target(collection.group))
            except ODataError as e:
                logger.warning(f"expand: cannot describe target of {edge.name}: {e}")
                continue
            seen.add(edge.name.lower())

            alias = nav.lower()
            if edge.is_collection and not columns:
                continue
            # a has_many expansion is one list column of related entities
            names = ["items"] if edge.is_collection else columns
            aliases = []
            for c in names:
                name = f"{alias}_{c}"
                if name.lower() in taken:
                    name = f"{alias}__{c}"
                taken.add(name.lower())
                aliases.append(name)
            result.append(Expansion(
                name=nav,
                alias=alias,
                columns=tuple(columns),
                aliases=tuple(aliases),
                relationship=edge,
            ))
        return result

    def shape(self, collection: Collection, sql: str,
              options: QueryOptions) -> Tuple[str, List[Expansion], List[str]]:
        """Apply the ``$expand`` and ``$select`` stages."""
        expansions = self.expansions(collection, options.expand)
        sql = apply_expand(sql, collection.group, expansions)

        select = select_columns(options.select)
        if select:
            # expanded columns must survive selection to be nested
            extra = [quote_ident(a) for e in expansions for a in e.aliased_columns]
            sql = apply_select(sql, select + extra)
        return sql, expansions, select

    def build(self, collection: Collection, options: QueryOptions,
              base_query: Optional[str] = None) -> QueryPlan:
        """
        SQL for a collection page.

        Raises
        ------
        BadRequestError
            Invalid ``$select`` item, or a rejected ``$filter``
        """
        sql = base_query if base_query is not None else collection.query
        sql, expansions, select = self.shape(collection, sql, options)
        sql = apply_filter(sql, resolve_filter(options.filter, self.config.filter_policy))
        sql = apply_orderby(sql, options.orderby)
        sql = apply_pagination(sql, options.skip, options.top)
        logger.debug(f"build: collection={collection.name}, sql={sql}")
        return QueryPlan(sql=sql, expansions=expansions, select=select,
                         top=options.top, skip=options.skip)

    def count_base(self, collection: Collection, options: QueryOptions) -> str:
        """Base query with only the filter applied, as counted by ``$count``."""
        return apply_filter(collection.query, resolve_filter(options.filter, self.config.filter_policy))

    def build_entity(self, collection: Collection, key_sql: str, options: QueryOptions) -> QueryPlan:
        """SQL for a single entity; ``key_sql`` is the key condition."""
        sql = f"SELECT * FROM ({collection.query}) AS keyed_data WHERE {key_sql}"
        sql, expansions, select = self.shape(collection, sql, options)
        logger.debug(f"build_entity: collection={collection.name}, sql={sql}")
        return QueryPlan(sql=sql, expansions=expansions, select=select)
