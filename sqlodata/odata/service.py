"""
sqlodata.odata.service - OData request orchestration
=====================================================

Serves the read operations of an OData v4 service root (one collection
group) on top of a DuckDB engine: service document, ``$metadata``,
collection pages, entities by key and key-based navigation.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional
import logging
import threading

from sqlodata.core.collections import CollectionRegistry
from sqlodata.core.config import ODataConfig
from sqlodata.core.connection import DuckDBEngine
from sqlodata.core.errors import ExecutionError, NotFoundError, ODataError
from sqlodata.odata import formatter
from sqlodata.odata.metadata import EntitySchema, build_metadata
from sqlodata.odata.navigation import (
    build_navigation_sql,
    key_column,
    key_literal,
    navigation_context,
    parse_collection_and_key,
)
from sqlodata.odata.pagination import (
    build_next_link,
    detect_more,
    include_next_link,
    max_page_size_preference,
    total_count,
)
from sqlodata.odata.params import QueryOptions, parse_options, validate_options
from sqlodata.odata.query_builder import QueryBuilder
from sqlodata.odata.relationships import RelationshipIndex
from sqlodata.odata.schema_cache import SchemaCache

logger = logging.getLogger("sqlodata.odata")


class ODataService:
    """
    Read-only OData service over the collections of a registry.

    Parameters
    ----------
    engine : DuckDBEngine
        Backing SQL engine
    registry : CollectionRegistry
        Collections exposed by the service
    config : ODataConfig, optional
        Paging, filter and cache settings. Defaults to ``ODataConfig()``.

    Examples
    --------
    >>> svc = ODataService(DuckDBEngine("sales.duckdb"), registry)
    >>> page = svc.collection("sales_test", "customers", {"$top": "5"},
    ...                       "http://localhost:5050")
    >>> page["@odata.nextLink"]
    'http://localhost:5050/sales_test/customers?$skip=5&$top=5'
    >>> svc.navigate("sales_test", "purchases(1)", "Customer", {},
    ...              "http://localhost:5050")["name"]
    'John Doe'
    """

    def __init__(
        self,
        engine: DuckDBEngine,
        registry: CollectionRegistry,
        config: Optional[ODataConfig] = None,
    ) -> None:
        self.engine = engine
        self.registry = registry
        self.config = config or ODataConfig()
        self.schema_cache = SchemaCache(engine, registry, ttl=self.config.schema_ttl)
        self.relationships = RelationshipIndex(engine, registry, ttl=self.config.schema_ttl)
        self.builder = QueryBuilder(self.relationships, self.schema_cache, self.config)

    # ---------------- helpers ----------------

    def options(self, params: Mapping[str, Any]) -> QueryOptions:
        if self.config.strict_parameters:
            return validate_options(params, self.config)
        return parse_options(params, self.config)

    def root_url(self, request_root: str) -> str:
        """Public service URL: the configured base URL, else the request's."""
        return (self.config.base_url or request_root).rstrip("/")

    def _require_group(self, group: str) -> None:
        if not self.registry.has_group(group):
            raise NotFoundError(f"Collection group '{group}' not found")

    # ---------------- documents ----------------

    def service_document(self, group: str, request_root: str) -> Dict[str, Any]:
        """List the entity sets of a group."""
        self._require_group(group)
        base = f"{self.root_url(request_root)}/{group}"
        return {
            "@odata.context": f"{base}/$metadata",
            "value": [
                {"name": c.name, "kind": "EntitySet", "url": c.name}
                for c in self.registry.collections(group)
            ],
        }

    def metadata(self, group: str) -> str:
        """CSDL ``$metadata`` of a group; collections that cannot be described are left out."""
        self._require_group(group)
        schemas: List[EntitySchema] = []
        for coll in self.registry.collections(group):
            try:
                columns = self.schema_cache.columns(group, coll.name)
            except ODataError as e:
                logger.warning(f"metadata: skipped collection={coll.name}: {e}")
                continue
            schemas.append(EntitySchema(
                collection=coll,
                columns=columns,
                navigation=self.relationships.edges(coll),
            ))
        return build_metadata(schemas)

    # ---------------- reads ----------------

    def collection(
        self,
        group: str,
        name: str,
        params: Mapping[str, Any],
        request_root: str,
        prefer: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        One page of a collection.

        ``prefer`` is the request's ``Prefer`` header; its
        ``odata.maxpagesize`` sets the page size when ``$top`` is absent.

        Raises
        ------
        NotFoundError
            Unknown collection
        BadRequestError
            Rejected query option
        ExecutionError
            Engine failure
        """
        coll = self.registry.get(group, name)
        opts = self.options(params)
        preferred = max_page_size_preference(prefer)
        if preferred is not None and "$top" not in params:
            opts.top = min(preferred, self.config.max_page_size)
        plan = self.builder.build(coll, opts)

        result = self.engine.execute(plan.sql)
        rows, more = detect_more(result.rows, plan.top)
        value = formatter.format_rows_with_expansion(rows, result.columns, plan.expansions)

        root = self.root_url(request_root)
        next_link = None
        if include_next_link(self.config.pagination_mode, more, opts.raw, prefer):
            next_link = build_next_link(root, group, name, opts.raw, opts.skip, opts.top)

        count = None
        if opts.count:
            count = total_count(self.engine, self.builder.count_base(coll, opts))

        logger.info(f"collection: group={group}, name={name}, rows={len(value)}, more={more}")
        return formatter.collection_envelope(
            formatter.context_url(f"{root}/{group}", name, opts.select),
            value,
            next_link=next_link,
            count=count,
        )

    def entity(
        self,
        group: str,
        name: str,
        key: str,
        params: Mapping[str, Any],
        request_root: str,
    ) -> Dict[str, Any]:
        """
        A single entity by key, with ``$expand`` and ``$select`` applied.

        Raises
        ------
        NotFoundError
            Unknown collection or key
        ExecutionError
            The key matches more than one row
        """
        coll = self.registry.get(group, name)
        opts = self.options(params)
        key_sql = f"{key_column(coll)} = {key_literal(key)}"
        plan = self.builder.build_entity(coll, key_sql, opts)

        result = self.engine.execute(plan.sql)
        if not result.rows:
            raise NotFoundError(f"Entity with key '{key}' not found in '{name}'")
        if len(result.rows) > 1:
            raise ExecutionError(f"Key '{key}' matches {len(result.rows)} entities in '{name}'", plan.sql)
        [entity] = formatter.format_rows_with_expansion(result.rows, result.columns, plan.expansions)

        root = self.root_url(request_root)
        return formatter.entity_envelope(
            formatter.entity_context_url(f"{root}/{group}", name, opts.select),
            entity,
        )

    def navigate(
        self,
        group: str,
        segment: str,
        nav_prop: str,
        params: Mapping[str, Any],
        request_root: str,
    ) -> Dict[str, Any]:
        """
        Follow a navigation property from an entity, e.g. ``purchases(1)/Customer``.

        One related row is returned as an entity, several as ``value``.

        Raises
        ------
        BadRequestError
            Malformed ``collection(key)`` segment
        NotFoundError
            Unknown collection or navigation property, or no related row
        """
        name, key = parse_collection_and_key(segment)
        coll = self.registry.get(group, name)
        edge = self.relationships.resolve(coll, nav_prop)
        if edge is None:
            raise NotFoundError(f"Navigation property '{nav_prop}' not found on '{name}'")

        query = build_navigation_sql(coll, key, edge)
        result = self.engine.execute(query.sql)
        if not result.rows:
            raise NotFoundError("Related entity not found")

        base = f"{self.root_url(request_root)}/{group}"
        entities = formatter.format_rows(result.rows, result.columns)
        if len(entities) == 1:
            return formatter.entity_envelope(navigation_context(base, query.context_set, single=True), entities[0])
        return formatter.collection_envelope(navigation_context(base, query.context_set, single=False), entities)

    # ---------------- cache control ----------------

    def invalidate_schema(self, group: Optional[str] = None, name: Optional[str] = None) -> None:
        """Drop cached schemas: one collection, one group, or everything."""
        if group is not None and name is not None:
            self.schema_cache.invalidate(group, name)
        elif group is not None:
            for coll in self.registry.collections(group):
                self.schema_cache.invalidate(group, coll.name)
        else:
            self.schema_cache.invalidate_all()
        self.relationships.invalidate(group)

    def warm_schema_cache(self, background: bool = False) -> Optional[threading.Thread]:
        """Introspect every collection now, or on a daemon thread."""
        if background:
            return self.schema_cache.warm_in_background()
        self.schema_cache.warm()
        return None
