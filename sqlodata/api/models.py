"""
sqlodata.api.models - Pydantic models for API responses
========================================================
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Example defaults for the bundled sales_test group
# ---------------------------------------------------------------------------

EXAMPLE_COLLECTION = "customers"
EXAMPLE_FILTER = "name eq 'John Doe'"
EXAMPLE_SELECT = "id,name,email"


class HealthResponse(BaseModel):
    """Health check payload."""

    ok: bool = True
    version: str
    groups: List[str] = Field(default_factory=list)


class EntitySetEntry(BaseModel):
    """One entry of a service document."""

    name: str = Field(description="Entity set name", json_schema_extra={"example": EXAMPLE_COLLECTION})
    kind: str = Field(default="EntitySet")
    url: str = Field(description="Entity set URL, relative to the service root")


class ServiceDocument(BaseModel):
    """OData service document of a collection group."""

    model_config = ConfigDict(populate_by_name=True)

    context: str = Field(alias="@odata.context")
    value: List[EntitySetEntry]


class CollectionPage(BaseModel):
    """Paginated collection response (documentation only)."""

    model_config = ConfigDict(populate_by_name=True)

    context: str = Field(alias="@odata.context")
    value: List[Dict[str, Any]]
    next_link: Optional[str] = Field(default=None, alias="@odata.nextLink")
    count: Optional[int] = Field(default=None, alias="@odata.count")


class ErrorDetail(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """OData error envelope."""

    error: ErrorDetail


ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Malformed key, reference or query option"},
    404: {"model": ErrorResponse, "description": "Unknown collection, entity or navigation property"},
    500: {"model": ErrorResponse, "description": "Query execution failed"},
}
