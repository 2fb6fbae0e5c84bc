"""
sqlodata.api.gateway - FastAPI OData Gateway
============================================

HTTP surface of the OData service. One service root per collection group:

- ``GET /{group}/``                   service document
- ``GET /{group}/$metadata``          CSDL document
- ``GET /{group}/{collection}``       collection page
- ``GET /{group}/{collection}(key)``  single entity
- ``GET /{group}/{collection}(key)/{nav}``  navigation
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
import logging

from fastapi import FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from sqlodata import __version__
from sqlodata.core.collections import CollectionRegistry
from sqlodata.core.config import ODataConfig
from sqlodata.core.connection import DuckDBEngine
from sqlodata.core.errors import ExecutionError, ODataError
from sqlodata.odata.formatter import ODATA_VERSION, content_type
from sqlodata.odata.navigation import is_entity_segment, parse_collection_and_key
from sqlodata.odata.service import ODataService
from sqlodata.api.models import (
    ERROR_RESPONSES,
    EXAMPLE_FILTER,
    EXAMPLE_SELECT,
    CollectionPage,
    HealthResponse,
    ServiceDocument,
)

logger = logging.getLogger("sqlodata.api")

ODATA_HEADERS = {"OData-Version": ODATA_VERSION}


class ODataGateway:
    """
    Wiring of configuration, engine, registry and service for the API.

    Reads configuration from environment variables by default.

    Parameters
    ----------
    config : ODataConfig, optional
        Defaults to ``ODataConfig.from_env()``
    engine : DuckDBEngine, optional
        Defaults to an engine on ``config.database``
    registry : CollectionRegistry, optional
        Defaults to ``config.collections_file``, or an empty registry
    """

    def __init__(
        self,
        config: Optional[ODataConfig] = None,
        engine: Optional[DuckDBEngine] = None,
        registry: Optional[CollectionRegistry] = None,
    ):
        self.config = config or ODataConfig.from_env()
        self.engine = engine or DuckDBEngine(self.config.database, read_only=self.config.read_only)
        if registry is None:
            if self.config.collections_file:
                registry = CollectionRegistry.from_yaml(self.config.collections_file)
            else:
                registry = CollectionRegistry()
        self.registry = registry
        self.service = ODataService(self.engine, self.registry, self.config)


# Global gateway instance (lazy init)
_gateway: Optional[ODataGateway] = None


def get_gateway() -> ODataGateway:
    """Get or create the global gateway instance."""
    global _gateway
    if _gateway is None:
        _gateway = ODataGateway()
    return _gateway


def odata_json(body: Dict[str, Any], accept: Optional[str] = None, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        content=body,
        status_code=status_code,
        media_type=content_type(accept),
        headers=ODATA_HEADERS,
    )


def request_root(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def create_app(
    gateway: Optional[ODataGateway] = None,
    warm_on_startup: Optional[bool] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Parameters
    ----------
    gateway : ODataGateway, optional
        Custom gateway. If None, one is built from the environment.
    warm_on_startup : bool, optional
        Introspect every collection when the app starts. Defaults to
        ``config.warm_cache``.

    Returns
    -------
    FastAPI
        Configured FastAPI application
    """
    global _gateway

    if gateway:
        _gateway = gateway
    else:
        _gateway = ODataGateway()

    warm = _gateway.config.warm_cache if warm_on_startup is None else warm_on_startup

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if warm:
            get_gateway().service.warm_schema_cache(background=True)
        yield

    app = FastAPI(
        title="SQL OData Gateway",
        description="""
## Read-only OData v4 over DuckDB

Every collection group is an OData service root that spreadsheet clients
(Excel, Power BI) can connect to.

### Quick Start
- Service document: `/sales_test/`
- Metadata: `/sales_test/$metadata`
- Query: `/sales_test/customers?$top=5&$orderby=name desc`
- Navigation: `/sales_test/purchases(1)/Customer`
        """,
        version=__version__,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Service", "description": "Service documents and metadata"},
            {"name": "Collections", "description": "Collection, entity and navigation reads"},
        ],
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["OData-Version"],
    )

    # -------------------------------------------------------------------------
    # Error handling
    # -------------------------------------------------------------------------

    @app.exception_handler(ODataError)
    async def odata_error_handler(request: Request, exc: ODataError) -> JSONResponse:
        if isinstance(exc, ExecutionError):
            logger.error(f"execution failed: path={request.url.path}, error={exc.cause}, sql={exc.sql}")
        else:
            logger.info(f"request failed: path={request.url.path}, status={exc.status}, error={exc.message}")
        return JSONResponse(status_code=exc.status, content=exc.to_dict(), headers=ODATA_HEADERS)

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        """Health check endpoint."""
        gw = get_gateway()
        return HealthResponse(ok=True, version=__version__, groups=gw.registry.groups())

    @app.get(
        "/{group}/$metadata",
        tags=["Service"],
        summary="CSDL metadata",
        responses={404: ERROR_RESPONSES[404]},
    )
    def metadata(group: str) -> Response:
        """OData $metadata document of a collection group."""
        gw = get_gateway()
        xml = gw.service.metadata(group)
        return Response(content=xml, media_type="application/xml", headers=ODATA_HEADERS)

    @app.get(
        "/{group}",
        tags=["Service"],
        summary="Service document",
        response_model=ServiceDocument,
        responses={404: ERROR_RESPONSES[404]},
    )
    @app.get("/{group}/", include_in_schema=False)
    def service_document(
        group: str,
        request: Request,
        accept: Optional[str] = Header(default=None),
    ) -> JSONResponse:
        """List the entity sets of a collection group."""
        gw = get_gateway()
        doc = gw.service.service_document(group, request_root(request))
        body = ServiceDocument.model_validate(doc).model_dump(by_alias=True)
        return odata_json(body, accept)

    @app.get(
        "/{group}/{segment}",
        tags=["Collections"],
        summary="Query a collection or read an entity by key",
        response_model=CollectionPage,
        responses=ERROR_RESPONSES,
    )
    def read(
        group: str,
        segment: str,
        request: Request,
        accept: Optional[str] = Header(default=None),
        prefer: Optional[str] = Header(default=None),
        filter: Optional[str] = Query(default=None, alias="$filter", examples=[EXAMPLE_FILTER]),
        select: Optional[str] = Query(default=None, alias="$select", examples=[EXAMPLE_SELECT]),
        expand: Optional[str] = Query(default=None, alias="$expand", examples=["Purchases"]),
        orderby: Optional[str] = Query(default=None, alias="$orderby", examples=["name desc"]),
        top: Optional[str] = Query(default=None, alias="$top", examples=["5"]),
        skip: Optional[str] = Query(default=None, alias="$skip", examples=["0"]),
        count: Optional[str] = Query(default=None, alias="$count", examples=["true"]),
    ) -> JSONResponse:
        """
        Query a collection (``customers``) or read one entity (``customers(1)``).

        The declared options only document the API; every query parameter
        of the request is passed through so next links can preserve them.
        """
        gw = get_gateway()
        params = dict(request.query_params)
        root = request_root(request)
        if is_entity_segment(segment):
            name, key = parse_collection_and_key(segment)
            body = gw.service.entity(group, name, key, params, root)
        else:
            body = gw.service.collection(group, segment, params, root, prefer=prefer)
        return odata_json(body, accept)

    @app.get(
        "/{group}/{segment}/{nav}",
        tags=["Collections"],
        summary="Follow a navigation property",
        responses=ERROR_RESPONSES,
    )
    def navigate(
        group: str,
        segment: str,
        nav: str,
        request: Request,
        accept: Optional[str] = Header(default=None),
    ) -> JSONResponse:
        """Related entity or entities of ``collection(key)``, e.g. ``purchases(1)/Customer``."""
        gw = get_gateway()
        body = gw.service.navigate(group, segment, nav, dict(request.query_params), request_root(request))
        return odata_json(body, accept)

    return app
