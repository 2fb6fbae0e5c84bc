"""
SQL OData engine (sqlodata)
===========================

A read-only OData v4 query translation and metadata engine over DuckDB.
Named SQL collections are grouped into service roots and served with
``$filter``, ``$select``, ``$orderby``, ``$expand``, ``$top``/``$skip``
and ``$count``, entity reads by key and key-based navigation.

Usage
-----
>>> from sqlodata import DuckDBEngine, CollectionRegistry, ODataService
>>>
>>> engine = DuckDBEngine("sales.duckdb")
>>> registry = CollectionRegistry.from_yaml("config/collections.yml")
>>> svc = ODataService(engine, registry)
>>> page = svc.collection("sales_test", "customers", {"$top": "5"},
...                       "http://localhost:5050")

Subpackages
-----------
- sqlodata.core: Configuration, errors, DuckDB engine and collection registry
- sqlodata.odata: Query translation, metadata and response shaping
- sqlodata.api: FastAPI REST gateway

"""

__version__ = "0.1.0"

# Core exports - available at package root
from sqlodata.core.config import ODataConfig
from sqlodata.core.errors import (
    ODataError,
    NotFoundError,
    BadRequestError,
    ExecutionError,
)
from sqlodata.core.connection import DuckDBEngine, QueryResult
from sqlodata.core.collections import Collection, CollectionRegistry, Reference

# Convenience re-exports
from sqlodata.odata import ODataService

__all__ = [
    # Version
    "__version__",
    # Core
    "ODataConfig",
    "ODataError",
    "NotFoundError",
    "BadRequestError",
    "ExecutionError",
    "DuckDBEngine",
    "QueryResult",
    "Collection",
    "CollectionRegistry",
    "Reference",
    # OData
    "ODataService",
]
