import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from schemadoc.api.v1.routers import objects
from schemadoc.core.config import settings
from schemadoc.core.errors import (
    GraphBuildError,
    NotFoundError,
    generic_error_handler,
    graph_build_handler,
    not_found_handler,
)
from schemadoc.graph.context import GraphContext

logging.basicConfig(level=settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not hasattr(app.state, "graph_context"):
        app.state.graph_context = GraphContext.from_settings(settings)
    yield
    app.state.graph_context.close()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# --- Exception handlers ---
app.add_exception_handler(NotFoundError, not_found_handler)  # type: ignore[arg-type]
app.add_exception_handler(GraphBuildError, graph_build_handler)  # type: ignore[arg-type]
app.add_exception_handler(Exception, generic_error_handler)  # type: ignore[arg-type]

# --- Routers ---
app.include_router(objects.router, prefix=settings.API_V1_STR)


# --- Health ---
def _graph_status() -> dict[str, Any]:
    context: GraphContext | None = getattr(app.state, "graph_context", None)
    status: dict[str, Any] = {"built": False, "objects": 0, "failed_queries": []}
    if context is not None and context.built:
        graph = context.graph
        status["built"] = True
        status["objects"] = len(graph)
        status["failed_queries"] = sorted(graph.report.failed_queries)
    return status


@app.get("/health", tags=["health"])
async def health_check() -> dict:
    graph = _graph_status()
    return {
        "status": "ok" if not graph["failed_queries"] else "degraded",
        "version": settings.VERSION,
        "graph": graph,
    }
