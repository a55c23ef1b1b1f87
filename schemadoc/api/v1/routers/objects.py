"""REST endpoints for SchemaObject - /api/v1/objects (read-only)."""

from typing import Annotated, Optional

from fastapi import APIRouter, Query

from schemadoc.api.v1.dependencies import GraphDep, PaginationDep
from schemadoc.api.v1.models.objects import (
    SchemaObjectListResponse,
    SchemaObjectResponse,
    SchemaObjectSummary,
)
from schemadoc.core.errors import NotFoundError
from schemadoc.models.schema import ObjectKind

router = APIRouter(prefix="/objects", tags=["objects"])


@router.get("/", response_model=SchemaObjectListResponse)
def list_objects(
    graph: GraphDep,
    pagination: PaginationDep,
    kind: Annotated[Optional[ObjectKind], Query(description="Filter by object kind")] = None,
) -> SchemaObjectListResponse:
    items = graph.by_kind(kind) if kind else graph.values()
    paged = items[pagination.skip : pagination.skip + pagination.limit]
    return SchemaObjectListResponse(
        items=[SchemaObjectSummary.from_domain(o) for o in paged],
        count=len(items),
    )


@router.get("/lookup", response_model=SchemaObjectResponse)
def lookup_object(
    graph: GraphDep,
    kind: Annotated[ObjectKind, Query(description="Object kind")],
    name: Annotated[str, Query(min_length=1, description="Object name, any case")],
) -> SchemaObjectResponse:
    obj = graph.lookup(kind, name)
    if obj is None:
        raise NotFoundError("SchemaObject", f"{kind.value} {name}")
    return obj


@router.get("/{key}", response_model=SchemaObjectResponse)
def get_object(key: str, graph: GraphDep) -> SchemaObjectResponse:
    obj = graph.get(key)
    if obj is None:
        raise NotFoundError("SchemaObject", key)
    return obj


@router.get("/{key}/children", response_model=SchemaObjectListResponse)
def list_children(key: str, graph: GraphDep) -> SchemaObjectListResponse:
    obj = graph.get(key)
    if obj is None:
        raise NotFoundError("SchemaObject", key)
    children = graph.children_of(obj)
    return SchemaObjectListResponse(
        items=[SchemaObjectSummary.from_domain(c) for c in children],
        count=len(children),
    )
