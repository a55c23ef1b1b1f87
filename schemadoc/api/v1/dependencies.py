"""FastAPI dependencies shared across all v1 routers."""

from typing import Annotated

from fastapi import Depends, Query, Request

from schemadoc.graph.builder import ObjectGraph
from schemadoc.graph.context import GraphContext

# ---------------------------------------------------------------------------
# Object graph
# ---------------------------------------------------------------------------


def graph_context(request: Request) -> GraphContext:
    return request.app.state.graph_context


def object_graph(context: Annotated[GraphContext, Depends(graph_context)]) -> ObjectGraph:
    """The application's frozen graph, built on the first request that needs it."""
    return context.graph


GraphDep = Annotated[ObjectGraph, Depends(object_graph)]


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


class Pagination:
    def __init__(
        self,
        skip: int = Query(0, ge=0, description="Number of records to skip"),
        limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    ) -> None:
        self.skip = skip
        self.limit = limit


PaginationDep = Annotated[Pagination, Depends(Pagination)]
