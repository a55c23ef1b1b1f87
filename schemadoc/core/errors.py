"""Custom exception classes and FastAPI exception handlers.

Register the handlers in schemadoc/main.py via app.add_exception_handler().
"""

from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------


class SchemaDocError(Exception):
    """Base class for every error raised by schemadoc."""


class ConnectivityError(SchemaDocError):
    """Raised when the catalog source cannot be reached at all."""


class GraphBuildError(SchemaDocError):
    """Raised when no object graph can be built (fatal for the whole build)."""


class CatalogQueryError(SchemaDocError):
    """Raised when a single catalog query fails; only that query is abandoned."""

    def __init__(self, query_id: str, detail: str) -> None:
        self.query_id = query_id
        self.detail = detail
        super().__init__(f"query {query_id}: {detail}")


class QueryContractError(CatalogQueryError):
    """Raised when a result set breaks the column naming conventions."""


class DuplicateKeyError(SchemaDocError):
    """Raised on a repeated shell key when the duplicate policy is 'reject'."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"duplicate object key {key!r}")


class LinkResolutionError(SchemaDocError):
    """Raised when an object has no name to build its key or link from."""

    def __init__(self, kind: str, name: Optional[str]) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"cannot resolve link for {kind} object with name {name!r}")


class GraphFrozenError(SchemaDocError):
    """Raised on any attempt to mutate a graph after it was handed out."""


class NotFoundError(SchemaDocError):
    """Raised when an object with the given key does not exist in the graph."""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"detail": str(exc)},
    )


async def graph_build_handler(request: Request, exc: GraphBuildError) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"detail": f"Object graph is unavailable: {exc}"},
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected internal error occurred."},
    )
