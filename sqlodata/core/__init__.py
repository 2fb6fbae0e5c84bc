"""
sqlodata.core - Configuration, errors and data access
======================================================

- ODataConfig: Engine configuration (ODATA_* environment variables)
- ODataError and subclasses: Errors carrying an HTTP status
- DuckDBEngine: SQL execution and catalog introspection
- CollectionRegistry: Collection groups loaded from YAML

"""

from sqlodata.core.config import ODataConfig
from sqlodata.core.errors import (
    ODataError,
    NotFoundError,
    BadRequestError,
    ExecutionError,
)
from sqlodata.core.connection import DuckDBEngine, QueryResult
from sqlodata.core.collections import Collection, CollectionRegistry, Reference

__all__ = [
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
]
