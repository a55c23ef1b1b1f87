"""API response models for SchemaObject."""

from typing import Optional

from pydantic import BaseModel

from schemadoc.models.schema import ObjectKind, SchemaObject

SchemaObjectResponse = SchemaObject


class SchemaObjectSummary(BaseModel):
    key: str
    kind: ObjectKind
    name: str
    link: Optional[str] = None
    parent_key: Optional[str] = None

    @classmethod
    def from_domain(cls, obj: SchemaObject) -> "SchemaObjectSummary":
        return cls(
            key=obj.key,
            kind=obj.kind,
            name=obj.name,
            link=obj.link,
            parent_key=obj.parent_key,
        )


class SchemaObjectListResponse(BaseModel):
    items: list[SchemaObjectSummary]
    count: int
