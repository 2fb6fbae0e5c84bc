"""
sqlodata.odata.params - System query option parsing
====================================================

Turns raw ``$``-prefixed query parameters into :class:`QueryOptions`.

Two modes are available:

- lenient (default): malformed ``$top``/``$skip`` fall back to defaults and
  are clamped, anything but ``"true"`` disables ``$count``
- strict: malformed values are rejected with :class:`BadRequestError`
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
import re

from sqlodata.core.config import ODataConfig
from sqlodata.core.errors import BadRequestError
from sqlodata.odata.pagination import should_include_count

_INT = re.compile(r"^[+-]?\d+$")
_STRICT_INT = re.compile(r"^\d+(_\d+)*$")

TEXT_OPTIONS = ("$filter", "$expand", "$select", "$orderby")


@dataclass
class QueryOptions:
    """
    Parsed system query options of one request.

    Attributes
    ----------
    filter, expand, select, orderby : str, optional
        Raw option text, None when absent or blank
    top : int
        Page size, already clamped to the configured maximum
    skip : int
        Rows to skip, never negative
    count : bool
        Whether ``@odata.count`` was requested
    raw : dict
        Every query parameter of the request, used to build next links
    """
    filter: Optional[str] = None
    expand: Optional[str] = None
    select: Optional[str] = None
    orderby: Optional[str] = None
    top: int = 1000
    skip: int = 0
    count: bool = False
    raw: Dict[str, str] = field(default_factory=dict)


def _text(params: Mapping[str, Any], name: str) -> Optional[str]:
    value = params.get(name)
    if value is None:
        return None
    value = str(value)
    return value if value.strip() else None


def parse_skip(value: Any) -> int:
    """``$skip`` as a non-negative int; 0 when absent or malformed."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value if value >= 0 else 0
    if isinstance(value, str) and _INT.match(value.strip()):
        num = int(value.strip())
        return num if num >= 0 else 0
    return 0


def parse_top(value: Any, default_page_size: int, max_page_size: int) -> int:
    """``$top`` as a positive int capped at ``max_page_size``; the default page size otherwise."""
    num: Optional[int] = None
    if isinstance(value, bool):
        num = None
    elif isinstance(value, int):
        num = value
    elif isinstance(value, str) and _INT.match(value.strip()):
        num = int(value.strip())
    if num is None or num <= 0:
        return default_page_size
    return min(num, max_page_size)


def parse_options(params: Mapping[str, Any], config: ODataConfig) -> QueryOptions:
    """
    Lenient option parsing.

    Parameters
    ----------
    params : mapping
        Raw query parameters
    config : ODataConfig
        Page size limits

    Returns
    -------
    QueryOptions
    """
    return QueryOptions(
        filter=_text(params, "$filter"),
        expand=_text(params, "$expand"),
        select=_text(params, "$select"),
        orderby=_text(params, "$orderby"),
        top=parse_top(params.get("$top"), config.default_page_size, config.max_page_size),
        skip=parse_skip(params.get("$skip")),
        count=should_include_count(params.get("$count")),
        raw={str(k): str(v) for k, v in params.items()},
    )


def validate_options(params: Mapping[str, Any], config: ODataConfig) -> QueryOptions:
    """
    Strict option parsing.

    Raises
    ------
    BadRequestError
        For a malformed ``$top``, ``$skip`` or ``$count``, or a blank
        ``$filter``/``$expand``/``$select``/``$orderby``
    """
    top = params.get("$top")
    if top is not None:
        text = str(top).strip()
        if not _STRICT_INT.match(text) or int(text.replace("_", "")) <= 0:
            raise BadRequestError(f"Invalid $top value '{top}': must be a positive integer")
        if int(text.replace("_", "")) > config.max_page_size:
            raise BadRequestError(
                f"Invalid $top value '{top}': must not exceed {config.max_page_size}"
            )

    skip = params.get("$skip")
    if skip is not None:
        text = str(skip).strip()
        if not _STRICT_INT.match(text):
            raise BadRequestError(f"Invalid $skip value '{skip}': must be a non-negative integer")

    count = params.get("$count")
    if count is not None and count not in ("true", "false"):
        raise BadRequestError(f"Invalid $count value '{count}': must be 'true' or 'false'")

    for name in TEXT_OPTIONS:
        if name in params and _text(params, name) is None:
            raise BadRequestError(f"Invalid {name} value: must be a non-empty string")

    options = parse_options(params, config)
    if top is not None:
        options.top = int(str(top).strip().replace("_", ""))
    if skip is not None:
        options.skip = int(str(skip).strip().replace("_", ""))
    return options
