"""
sqlodata.odata.formatter - OData JSON response shaping
=======================================================

Turns engine rows into OData v4 JSON: entity objects, nested expansions,
context URLs, the paginated collection envelope and the negotiated
content type.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Dict, List, Optional, Sequence
import base64
import datetime
import decimal
import uuid

from sqlodata.odata.query_builder import Expansion, split_csv

ODATA_VERSION = "4.0"
METADATA_LEVELS = ("minimal", "full", "none")


def serialize_value(value: Any) -> Any:
    """
    Convert an engine value into a JSON-compatible one.

    Dates become ``YYYY-MM-DD``, times ``HH:MM:SS`` and timestamps
    ``YYYY-MM-DDTHH:MM:SS``. Other scalars pass through unchanged.

    Examples
    --------
    >>> serialize_value(datetime.date(2024, 1, 5))
    '2024-01-05'
    >>> serialize_value(datetime.datetime(2024, 1, 5, 9, 3, 7))
    '2024-01-05T09:03:07'
    >>> serialize_value(datetime.time(9, 3, 7))
    '09:03:07'
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    # datetime is a subclass of date, so it goes first
    if isinstance(value, datetime.datetime):
        return value.strftime("%Y-%m-%dT%H:%M:%S")
    if isinstance(value, datetime.date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, datetime.time):
        return value.strftime("%H:%M:%S")
    if isinstance(value, datetime.timedelta):
        return str(value)
    if isinstance(value, decimal.Decimal):
        return float(value) if value != value.to_integral_value() else int(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, dict):
        return {str(k): serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    return str(value)


def format_row(row: Sequence[Any], columns: Sequence[str]) -> Dict[str, Any]:
    """Zip column names with one row into an ordered entity."""
    return OrderedDict((col, serialize_value(val)) for col, val in zip(columns, row))


def format_rows(rows: Sequence[Sequence[Any]], columns: Sequence[str]) -> List[Dict[str, Any]]:
    return [format_row(row, columns) for row in rows]


def format_rows_with_expansion(
    rows: Sequence[Sequence[Any]],
    columns: Sequence[str],
    expansions: Sequence[Expansion],
) -> List[Dict[str, Any]]:
    """
    Format joined rows, nesting each expansion under its property name.

    Expansion columns trail the primary columns in expansion order, so the
    row is split by position. A single-valued navigation property whose
    related values are all null (no related row) is rendered as null; a
    collection-valued one holds the list of related entities, ``[]`` when
    there are none.
    """
    if not expansions:
        return format_rows(rows, columns)

    width = sum(len(e.aliases) for e in expansions)
    primary = list(columns[: len(columns) - width])
    entities = []
    for row in rows:
        row = list(row)
        entity = format_row(row[: len(primary)], primary)
        pos = len(primary)
        for exp in expansions:
            values = row[pos: pos + len(exp.aliases)]
            pos += len(exp.aliases)
            if not exp.columns:
                continue
            if exp.relationship.is_collection:
                items = values[0] or []
                entity[exp.name] = [
                    format_row([item.get(c) for c in exp.columns], exp.columns) for item in items
                ]
            elif all(v is None for v in values):
                entity[exp.name] = None
            else:
                entity[exp.name] = format_row(values, exp.columns)
        entities.append(entity)
    return entities


def context_url(base_url: str, entity_set: str, select: Optional[str] = None) -> str:
    """
    ``@odata.context`` for an entity set, with the selected columns if any.

    >>> context_url("http://localhost:4000/sales_test", "customers", "id, name,")
    'http://localhost:4000/sales_test/$metadata#customers(id,name)'
    """
    columns = split_csv(select)
    if columns:
        return f"{base_url}/$metadata#{entity_set}({','.join(columns)})"
    return f"{base_url}/$metadata#{entity_set}"


def entity_context_url(base_url: str, entity_set: str, select: Optional[str] = None) -> str:
    return context_url(base_url, entity_set, select) + "/$entity"


def metadata_level(accept: Optional[str]) -> str:
    """``odata.metadata`` level requested by an Accept header."""
    if accept:
        for level in METADATA_LEVELS:
            if f"odata.metadata={level}" in accept:
                return level
    return "minimal"


def content_type(accept: Optional[str] = None) -> str:
    """
    Response content type negotiated from the Accept header.

    >>> content_type("application/json;odata.metadata=full")
    'application/json;odata.metadata=full;odata.streaming=true;IEEE754Compatible=false'
    """
    level = metadata_level(accept)
    return f"application/json;odata.metadata={level};odata.streaming=true;IEEE754Compatible=false"


def collection_envelope(
    context: str,
    value: List[Dict[str, Any]],
    next_link: Optional[str] = None,
    count: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Collection response, keys in OData order: context, value, nextLink, count.
    """
    body: Dict[str, Any] = OrderedDict()
    body["@odata.context"] = context
    body["value"] = value
    if next_link is not None:
        body["@odata.nextLink"] = next_link
    if count is not None:
        body["@odata.count"] = count
    return body


def entity_envelope(context: str, entity: Dict[str, Any]) -> Dict[str, Any]:
    body: Dict[str, Any] = OrderedDict()
    body["@odata.context"] = context
    body.update(entity)
    return body
