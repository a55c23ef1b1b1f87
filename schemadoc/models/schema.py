"""Object model assembled from the schema catalog.

Core entity types:
  SchemaObject  - one catalog object (table, view, column, …) identified by key
  FrozenSchemaObject - the read-only form a frozen graph publishes
  Attribute     - one named value describing an object
  AttributeRow  - an ordered list of attributes delivered by one source row
                  (or by several rows merged in concatenation mode)
  BuildReport   - counters collected while a graph is being assembled

Parents and object references are stored as keys, never as embedded objects;
the ObjectGraph resolves them by lookup.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ObjectKind(str, Enum):
    """Supported object kinds.

    COLUMN and CONSTRAINT are not catalog object types of their own; they are
    layered on top of the catalog vocabulary so every kind is handled alike.
    """

    TABLE = "table"
    VIEW = "view"
    INDEX = "index"
    TRIGGER = "trigger"
    PROCEDURE = "procedure"
    FUNCTION = "function"
    PACKAGE = "package"
    SEQUENCE = "sequence"
    COLUMN = "column"
    CONSTRAINT = "constraint"

    @classmethod
    def from_catalog(cls, label: str) -> "ObjectKind":
        """Map a catalog type label such as ``'TABLE'`` onto a kind."""
        return cls(label.strip().lower())


class DuplicateKeyPolicy(str, Enum):
    """What shell creation does when a key is already present in the graph."""

    OVERWRITE = "overwrite"
    REJECT = "reject"
    KEEP_FIRST = "keep_first"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


class Attribute(BaseModel):
    """A named value in an attribute row. Attributes are immutable."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str = ""
    visible: bool = True
    preformatted: bool = False
    ref_key: Optional[str] = Field(
        default=None,
        description="Key of the object this value names, when it names one.",
    )


AttributeRow = list[Attribute]


class SchemaObject(BaseModel):
    """A schema object with its ordered attribute table."""

    key: str = Field(..., min_length=1)
    kind: ObjectKind
    name: str
    link: Optional[str] = None
    parent_key: Optional[str] = None
    attributes: list[AttributeRow] = Field(default_factory=list)
    attached: bool = False

    def find_attributes(self, name: str) -> list[Attribute]:
        """Every attribute called *name* (case-insensitive), in row order."""
        wanted = name.lower()
        return [
            attribute
            for row in self.attributes
            for attribute in row
            if attribute.name.lower() == wanted
        ]

    def frozen_copy(self) -> "FrozenSchemaObject":
        """A read-only copy with every attribute row turned into a tuple."""
        return FrozenSchemaObject(
            key=self.key,
            kind=self.kind,
            name=self.name,
            link=self.link,
            parent_key=self.parent_key,
            attributes=tuple(tuple(row) for row in self.attributes),
            attached=self.attached,
        )


class FrozenSchemaObject(SchemaObject):
    """A SchemaObject published by a frozen graph."""

    model_config = ConfigDict(frozen=True)

    attributes: tuple[tuple[Attribute, ...], ...] = ()


class BuildReport(BaseModel):
    """Counters for one graph build."""

    shells_created: int = 0
    duplicate_keys: int = 0
    rows_read: int = 0
    rows_ingested: int = 0
    dangling_rows: int = 0
    attachments: int = 0
    failed_queries: dict[str, str] = Field(default_factory=dict)
    duration_s: float = 0.0
