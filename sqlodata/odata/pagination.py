"""
sqlodata.odata.pagination - Paging, next links and counts
==========================================================

Pages are fetched with one extra row (``LIMIT top + 1``) so the presence
of a following page is known without a second query.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote
import logging
import re

from sqlodata.core.connection import DuckDBEngine
from sqlodata.core.errors import ODataError

logger = logging.getLogger("sqlodata.odata")

_URL_SAFE = "$,'():/"
_MAX_PAGE_SIZE = re.compile(r"(?:^|[,;\s])odata\.maxpagesize\s*=\s*(\d+)", re.IGNORECASE)


class PaginationMode:
    """When ``@odata.nextLink`` is emitted."""

    SERVER_DRIVEN = "server_driven"  # whenever more rows exist
    LAZY = "lazy"  # only when the request asks for paging, see include_next_link


def should_include_count(value: Any) -> bool:
    """
    Whether ``$count`` asks for ``@odata.count``.

    Only the exact string ``"true"`` or the boolean True count; ``"TRUE"``
    does not.
    """
    return value is True or value == "true"


def detect_more(rows: Sequence[Any], top: int) -> Tuple[List[Any], bool]:
    """
    Split an over-fetched page.

    Returns
    -------
    tuple
        ``(rows trimmed to top, more)``

    Examples
    --------
    >>> detect_more([1, 2, 3, 4], 3)
    ([1, 2, 3], True)
    >>> detect_more([1, 2], 3)
    ([1, 2], False)
    """
    rows = list(rows)
    if len(rows) > top:
        return rows[:top], True
    return rows, False


def wants_server_paging(params: Mapping[str, Any]) -> bool:
    """True when the request carries ``pagination=server_driven``."""
    return (
        params.get("pagination") == PaginationMode.SERVER_DRIVEN
        or params.get("$pagination") == PaginationMode.SERVER_DRIVEN
    )


def max_page_size_preference(prefer: Optional[str]) -> Optional[int]:
    """
    ``odata.maxpagesize`` of a ``Prefer`` header, None when absent or zero.

    >>> max_page_size_preference("return=minimal, odata.maxpagesize=50")
    50
    """
    if not prefer:
        return None
    m = _MAX_PAGE_SIZE.search(prefer)
    if not m or int(m.group(1)) <= 0:
        return None
    return int(m.group(1))


def include_next_link(
    mode: str,
    more: bool,
    params: Mapping[str, Any],
    prefer: Optional[str] = None,
) -> bool:
    """
    Whether a page gets ``@odata.nextLink``.

    In lazy mode the request must ask for paging, either with a
    ``Prefer: odata.maxpagesize=N`` header or with the
    ``pagination=server_driven`` query parameter.
    """
    if not more:
        return False
    if mode == PaginationMode.LAZY:
        return wants_server_paging(params) or max_page_size_preference(prefer) is not None
    return True


def encode_query(params: Mapping[str, Any]) -> str:
    """URL-encode parameters in key order, keeping ``$`` and commas readable."""
    return "&".join(
        f"{quote(str(k), safe=_URL_SAFE)}={quote(str(v), safe=_URL_SAFE)}"
        for k, v in sorted(params.items())
    )


def build_next_link(
    base_url: str,
    group: str,
    collection: str,
    params: Mapping[str, Any],
    skip: int,
    top: int,
) -> str:
    """
    URL of the page after the current one.

    The request's parameters are kept; ``$skip`` and ``$top`` are
    overwritten.

    Examples
    --------
    >>> build_next_link("http://localhost:4000", "sales_test", "customers",
    ...                 {"$top": "5"}, 0, 5)
    'http://localhost:4000/sales_test/customers?$skip=5&$top=5'
    """
    merged = dict(params)
    merged["$skip"] = str(skip + top)
    merged["$top"] = str(top)
    return f"{base_url.rstrip('/')}/{group}/{collection}?{encode_query(merged)}"


def count_sql(sql: str) -> str:
    return f"SELECT COUNT(*) as total_count FROM ({sql}) AS count_data"


def total_count(engine: DuckDBEngine, sql: str) -> int:
    """
    Row count of a query, 0 if the count itself fails.

    ``sql`` is the base query with the filter applied; expansion,
    selection, ordering and paging do not change the count.
    """
    try:
        result = engine.execute(count_sql(sql))
    except ODataError as e:
        logger.warning(f"total_count: count query failed: {e}")
        return 0
    if not result.rows:
        return 0
    return int(result.rows[0][0])
