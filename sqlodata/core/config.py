"""
sqlodata.core.config - Service configuration
=============================================

Configuration for the OData engine, read from ``ODATA_*`` environment
variables by default.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import os


PAGINATION_MODES = ("server_driven", "lazy")
FILTER_POLICIES = ("reject", "ignore")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


@dataclass
class ODataConfig:
    """
    Engine configuration.

    Parameters
    ----------
    database : str
        DuckDB database path, or ":memory:"
    collections_file : str, optional
        YAML file describing the collection groups
    base_url : str, optional
        Public base URL used in context URLs and next links. Derived from
        the request when unset.
    default_page_size : int
        Page size used when $top is absent or invalid (default: 1000)
    max_page_size : int
        Upper bound applied to $top (default: 5000)
    pagination_mode : str
        "server_driven" always emits @odata.nextLink when more rows exist;
        "lazy" only when the request asks for server driven paging
    filter_policy : str
        "reject" answers 400 to an unparseable $filter; "ignore" drops it
        and serves unfiltered rows
    strict_parameters : bool
        Reject malformed $top/$skip/$count with 400 instead of clamping
    schema_ttl : float
        Schema cache lifetime in seconds (default: 300)
    warm_cache : bool
        Introspect every collection at startup
    read_only : bool
        Open the database read-only

    Examples
    --------
    >>> cfg = ODataConfig(database="sales.duckdb", max_page_size=500)
    >>> cfg = ODataConfig.from_env()
    """
    database: str = ":memory:"
    collections_file: Optional[str] = None
    base_url: Optional[str] = None
    default_page_size: int = 1000
    max_page_size: int = 5000
    pagination_mode: str = "server_driven"
    filter_policy: str = "reject"
    strict_parameters: bool = False
    schema_ttl: float = 300.0
    warm_cache: bool = False
    read_only: bool = False

    @classmethod
    def from_env(cls) -> "ODataConfig":
        """Build a configuration from ODATA_* environment variables."""
        base_url = os.environ.get("ODATA_BASE_URL") or None
        cfg = cls(
            database=os.environ.get("ODATA_DATABASE", ":memory:"),
            collections_file=os.environ.get("ODATA_COLLECTIONS") or None,
            base_url=base_url.rstrip("/") if base_url else None,
            default_page_size=_env_int("ODATA_DEFAULT_PAGE_SIZE", 1000),
            max_page_size=_env_int("ODATA_MAX_PAGE_SIZE", 5000),
            pagination_mode=os.environ.get("ODATA_PAGINATION_MODE", "server_driven").lower(),
            filter_policy=os.environ.get("ODATA_FILTER_POLICY", "reject").lower(),
            strict_parameters=_env_bool("ODATA_STRICT_PARAMETERS", False),
            schema_ttl=float(os.environ.get("ODATA_SCHEMA_TTL", "300")),
            warm_cache=_env_bool("ODATA_WARM_CACHE", False),
            read_only=_env_bool("ODATA_READ_ONLY", False),
        )
        cfg.validate()
        return cfg

    def validate(self) -> None:
        """Validate configuration. Raises ValueError if invalid."""
        if self.default_page_size <= 0 or self.max_page_size <= 0:
            raise ValueError("Page sizes must be positive")
        if self.default_page_size > self.max_page_size:
            raise ValueError(
                f"default_page_size ({self.default_page_size}) exceeds "
                f"max_page_size ({self.max_page_size})"
            )
        if self.pagination_mode not in PAGINATION_MODES:
            raise ValueError(f"Unknown pagination_mode: {self.pagination_mode!r}")
        if self.filter_policy not in FILTER_POLICIES:
            raise ValueError(f"Unknown filter_policy: {self.filter_policy!r}")
        if self.schema_ttl < 0:
            raise ValueError("schema_ttl must not be negative")
