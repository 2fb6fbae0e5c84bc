"""
sqlodata.odata.metadata - CSDL $metadata generation
====================================================

Builds the OData v4 ``$metadata`` document of a collection group from the
cached collection schemas and navigation edges.

All entity types live in the ``Default`` namespace. ``STRUCT`` columns
are lifted into shared ``ComplexType`` declarations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
import xml.etree.ElementTree as ET

from sqlodata.core.collections import Collection
from sqlodata.odata.naming import pascal_case, singularize
from sqlodata.odata.relationships import Relationship, source_table

EDMX_NS = "http://docs.oasis-open.org/odata/ns/edmx"
EDM_NS = "http://docs.oasis-open.org/odata/ns/edm"
NAMESPACE = "Default"

_EXACT_TYPES = {
    "BIGINT": "Edm.Int64",
    "INT8": "Edm.Int64",
    "LONG": "Edm.Int64",
    "INTEGER": "Edm.Int32",
    "INT": "Edm.Int32",
    "INT4": "Edm.Int32",
    "SMALLINT": "Edm.Int16",
    "INT2": "Edm.Int16",
    "TINYINT": "Edm.Byte",
    "UTINYINT": "Edm.Byte",
    # unsigned and 128-bit integers take the next wider type
    "USMALLINT": "Edm.Int32",
    "UINTEGER": "Edm.Int64",
    "UBIGINT": "Edm.Decimal",
    "HUGEINT": "Edm.Decimal",
    "UHUGEINT": "Edm.Decimal",
    "DOUBLE": "Edm.Double",
    "FLOAT8": "Edm.Double",
    "REAL": "Edm.Single",
    "FLOAT": "Edm.Single",
    "FLOAT4": "Edm.Single",
    "TEXT": "Edm.String",
    "STRING": "Edm.String",
    "BOOLEAN": "Edm.Boolean",
    "BOOL": "Edm.Boolean",
    "DATE": "Edm.Date",
    "TIME": "Edm.TimeOfDay",
    "TIMESTAMP": "Edm.DateTimeOffset",
    "TIMESTAMPTZ": "Edm.DateTimeOffset",
    "TIMESTAMP WITH TIME ZONE": "Edm.DateTimeOffset",
    "TIMESTAMP_S": "Edm.DateTimeOffset",
    "TIMESTAMP_MS": "Edm.DateTimeOffset",
    "TIMESTAMP_NS": "Edm.DateTimeOffset",
    "DATETIME": "Edm.DateTimeOffset",
    "UUID": "Edm.Guid",
    "BLOB": "Edm.Binary",
    "BYTEA": "Edm.Binary",
}

_PREFIX_TYPES = (
    ("DECIMAL", "Edm.Decimal"),
    ("NUMERIC", "Edm.Decimal"),
    ("VARCHAR", "Edm.String"),
    ("CHAR", "Edm.String"),
)


def edm_type(duckdb_type: str) -> str:
    """
    Map a DuckDB column type to an EDM primitive type.

    Unknown types map to ``Edm.String``.

    >>> edm_type("DECIMAL(10,2)")
    'Edm.Decimal'
    >>> edm_type("UINTEGER")
    'Edm.Int64'
    >>> edm_type("INTERVAL")
    'Edm.String'
    """
    t = duckdb_type.strip().upper()
    if t in _EXACT_TYPES:
        return _EXACT_TYPES[t]
    for prefix, edm in _PREFIX_TYPES:
        if t.startswith(prefix):
            return edm
    return "Edm.String"


# ---------------- STRUCT type parsing ----------------

def _split_top_level(text: str) -> List[str]:
    parts, depth, buf, quoted = [], 0, [], False
    for ch in text:
        if ch == '"':
            quoted = not quoted
        elif not quoted and ch == "(":
            depth += 1
        elif not quoted and ch == ")":
            depth -= 1
        elif not quoted and ch == "," and depth == 0:
            parts.append("".join(buf).strip())
            buf = []
            continue
        buf.append(ch)
    if buf:
        parts.append("".join(buf).strip())
    return [p for p in parts if p]


def parse_struct(type_str: str) -> Optional[Tuple[List[Tuple[str, str]], bool]]:
    """
    Fields of a ``STRUCT(...)`` or ``STRUCT(...)[]`` type.

    Returns
    -------
    tuple or None
        ``(fields, is_array)``, or None when the type is not a struct

    Examples
    --------
    >>> parse_struct('STRUCT(street VARCHAR, "zip code" INTEGER)[]')
    ([('street', 'VARCHAR'), ('zip code', 'INTEGER')], True)
    """
    t = type_str.strip()
    is_array = t.endswith("[]")
    if is_array:
        t = t[:-2].strip()
    if not (t.upper().startswith("STRUCT(") and t.endswith(")")):
        return None
    fields = []
    for part in _split_top_level(t[len("STRUCT("):-1]):
        if part.startswith('"'):
            end = part.index('"', 1)
            name, ftype = part[1:end], part[end + 1:].strip()
        else:
            name, _, ftype = part.partition(" ")
        fields.append((name, ftype.strip()))
    return fields, is_array


@dataclass
class ComplexType:
    name: str
    properties: List[Tuple[str, str]]  # (name, EDM type reference)


class ComplexTypeRegistry:
    """Shared ComplexType declarations, deduplicated by field signature."""

    def __init__(self) -> None:
        self.types: List[ComplexType] = []
        self._by_signature: Dict[Tuple[Tuple[str, str], ...], str] = {}

    def _unique_name(self, base: str) -> str:
        names = {c.name for c in self.types}
        name, n = base, 2
        while name in names:
            name = f"{base}{n}"
            n += 1
        return name

    def lift(self, column: str, fields: List[Tuple[str, str]]) -> str:
        """Declare (or reuse) a complex type for a struct column; returns its name."""
        props = [(fname, self.type_ref(fname, ftype)) for fname, ftype in fields]
        signature = tuple(props)
        if signature in self._by_signature:
            return self._by_signature[signature]
        name = self._unique_name(pascal_case(singularize(column)) or "Complex")
        self.types.append(ComplexType(name=name, properties=props))
        self._by_signature[signature] = name
        return name

    def type_ref(self, column: str, duckdb_type: str) -> str:
        """EDM type reference of a column, lifting structs as needed."""
        parsed = parse_struct(duckdb_type)
        if parsed is None:
            t = duckdb_type.strip()
            if t.endswith("[]"):
                return f"Collection({edm_type(t[:-2])})"
            return edm_type(t)
        fields, is_array = parsed
        ref = f"{NAMESPACE}.{self.lift(column, fields)}"
        return f"Collection({ref})" if is_array else ref


# ---------------- document ----------------

@dataclass
class EntitySchema:
    """Everything the generator needs about one collection."""
    collection: Collection
    columns: Sequence[Tuple[str, str]]
    navigation: Sequence[Relationship] = ()


def entity_type_name(collection_name: str) -> str:
    return pascal_case(collection_name)


def key_columns(collection: Collection, columns: Sequence[Tuple[str, str]]) -> List[str]:
    """
    Key of an entity type.

    The declared primary key when all its columns exist, else the first
    column named ``id`` (any case), else the first column.
    """
    names = [c[0] for c in columns]
    if collection.primary_key and all(k in names for k in collection.primary_key):
        return list(collection.primary_key)
    for name in names:
        if name.lower() == "id":
            return [name]
    return names[:1]


def build_metadata(schemas: Sequence[EntitySchema]) -> str:
    """
    Render the ``$metadata`` document as one compact line of XML.

    Parameters
    ----------
    schemas : sequence of EntitySchema
        Collections of the group, in entity set order

    Returns
    -------
    str
        CSDL XML
    """
    complex_types = ComplexTypeRegistry()
    known_sets = {source_table(s.collection): s.collection for s in schemas}
    known_sets.update({s.collection.name: s.collection for s in schemas})

    entity_types = []
    for schema in schemas:
        coll = schema.collection
        et = ET.Element("EntityType", {"Name": entity_type_name(coll.name)})
        keys = key_columns(coll, schema.columns)
        if keys:
            key_el = ET.SubElement(et, "Key")
            for k in keys:
                ET.SubElement(key_el, "PropertyRef", {"Name": k})
        for name, ctype in schema.columns:
            ET.SubElement(et, "Property", {
                "Name": name,
                "Type": complex_types.type_ref(name, ctype),
                "Nullable": "false" if name in keys else "true",
            })
        for edge in schema.navigation:
            target = known_sets.get(edge.target_name)
            if target is None:
                continue
            ref = f"{NAMESPACE}.{entity_type_name(target.name)}"
            ET.SubElement(et, "NavigationProperty", {
                "Name": edge.name,
                "Type": f"Collection({ref})" if edge.is_collection else ref,
                "Nullable": "true",
            })
        entity_types.append(et)

    root = ET.Element("edmx:Edmx", {"xmlns:edmx": EDMX_NS, "Version": "4.0"})
    services = ET.SubElement(root, "edmx:DataServices")
    schema_el = ET.SubElement(services, "Schema", {"xmlns": EDM_NS, "Namespace": NAMESPACE})

    for ct in complex_types.types:
        ct_el = ET.SubElement(schema_el, "ComplexType", {"Name": ct.name})
        for pname, ptype in ct.properties:
            ET.SubElement(ct_el, "Property", {"Name": pname, "Type": ptype})
    schema_el.extend(entity_types)

    container = ET.SubElement(schema_el, "EntityContainer", {"Name": NAMESPACE})
    for schema in schemas:
        ET.SubElement(container, "EntitySet", {
            "Name": schema.collection.name,
            "EntityType": f"{NAMESPACE}.{entity_type_name(schema.collection.name)}",
        })

    return '<?xml version="1.0" encoding="UTF-8"?>' + ET.tostring(root, encoding="unicode")
