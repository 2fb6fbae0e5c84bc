"""
sqlodata.odata - OData v4 query translation
============================================

- ODataService: Service document, $metadata, collection, entity and
  navigation reads
- QueryBuilder: System query options to SQL
- SchemaCache: TTL cache of collection schemas
- RelationshipIndex: Declared and discovered navigation edges

"""

from sqlodata.odata.service import ODataService
from sqlodata.odata.query_builder import QueryBuilder, QueryPlan, Expansion
from sqlodata.odata.schema_cache import SchemaCache
from sqlodata.odata.relationships import Relationship, RelationshipIndex
from sqlodata.odata.params import QueryOptions

__all__ = [
    "ODataService",
    "QueryBuilder",
    "QueryPlan",
    "Expansion",
    "SchemaCache",
    "Relationship",
    "RelationshipIndex",
    "QueryOptions",
]
