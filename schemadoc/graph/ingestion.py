"""Declarative ingestion specs and the catalog query contract.

A catalog is data: a list of shell queries that create the objects, and a
table mapping each object kind to the ingestion specs that attribute them.
One generic routine (ObjectGraphBuilder.ingest) interprets every spec.

Query contract for every ingestion result set:
  - column 1 holds the object's own name;
  - child queries expose the owner's name in a column called ``parent_name``;
  - columns whose name starts with ``_`` are hidden from output;
  - columns whose name ends with ``code`` (any case) hold source text that is
    rendered verbatim.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from schemadoc.connectors.base import ColumnMeta
from schemadoc.core.errors import QueryContractError
from schemadoc.models.keys import PARENT_SCOPED_KINDS
from schemadoc.models.schema import ObjectKind

logger = logging.getLogger(__name__)

PARENT_NAME_COLUMN = "parent_name"
HIDDEN_PREFIX = "_"
CODE_SUFFIX = "code"


def is_hidden_column(name: str) -> bool:
    return name.startswith(HIDDEN_PREFIX)


def is_code_column(name: str) -> bool:
    return name.lower().endswith(CODE_SUFFIX)


def is_parent_column(name: str) -> bool:
    return name.lower() == PARENT_NAME_COLUMN


# ---------------------------------------------------------------------------
# Specs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ShellQuery:
    """A Phase 1 query creating object shells.

    Without ``child_kind`` the rows are ``(object_type, object_name)``.
    With ``child_kind`` every row is ``(object_name, parent_name, parent_type)``
    and creates an object of that kind below its parent.
    """

    query_id: str
    sql: str
    child_kind: Optional[ObjectKind] = None


@dataclass(frozen=True)
class IngestionSpec:
    """A Phase 2 query attributing objects of one kind.

    ``column_kinds`` has one entry per result column: the kind of object the
    column's value names, or None for plain values.
    """

    query_id: str
    sql: str
    kind: ObjectKind
    column_kinds: tuple[Optional[ObjectKind], ...]
    parent_kind: Optional[ObjectKind] = None
    concatenate: bool = False
    wrap: bool = False


@dataclass
class Catalog:
    """Every query needed to build a graph, in execution order."""

    name: str
    shell_queries: list[ShellQuery] = field(default_factory=list)
    kind_order: list[ObjectKind] = field(default_factory=list)
    specs: dict[ObjectKind, list[IngestionSpec]] = field(default_factory=dict)

    def specs_for(self, kind: ObjectKind) -> list[IngestionSpec]:
        return self.specs.get(kind, [])

    def ordered_specs(self) -> list[IngestionSpec]:
        return [spec for kind in self.kind_order for spec in self.specs_for(kind)]

    def all_queries(self) -> list[tuple[str, str]]:
        """(query_id, sql) for every query, shells first."""
        queries = [(q.query_id, q.sql) for q in self.shell_queries]
        queries.extend((s.query_id, s.sql) for s in self.ordered_specs())
        return queries


# ---------------------------------------------------------------------------
# Contract validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResultColumn:
    """A result column classified by the naming conventions."""

    index: int
    name: str
    kind: Optional[ObjectKind]
    visible: bool
    preformatted: bool


@dataclass(frozen=True)
class QueryContract:
    """How the columns of one result set map onto attributes."""

    identity: ResultColumn
    parent_index: Optional[int]
    attribute_columns: tuple[ResultColumn, ...]
    width: int

    @classmethod
    def check(cls, spec: IngestionSpec, columns: Sequence[ColumnMeta]) -> "QueryContract":
        """Validate *columns* against *spec* and classify them.

        Raises:
            QueryContractError: when the result set breaks the conventions.
        """
        if not columns:
            raise QueryContractError(spec.query_id, "result set has no columns")
        if len(columns) != len(spec.column_kinds):
            raise QueryContractError(
                spec.query_id,
                f"expected {len(spec.column_kinds)} columns, got {len(columns)}",
            )
        if spec.kind in PARENT_SCOPED_KINDS and spec.parent_kind is None:
            raise QueryContractError(
                spec.query_id, f"{spec.kind.name} rows need a parent kind"
            )

        parent_index: Optional[int] = None
        attribute_columns: list[ResultColumn] = []
        for index, meta in enumerate(columns[1:], start=1):
            if is_parent_column(meta.name):
                parent_index = index
                continue
            attribute_columns.append(
                ResultColumn(
                    index=index,
                    name=meta.name,
                    kind=spec.column_kinds[index],
                    visible=not is_hidden_column(meta.name),
                    preformatted=is_code_column(meta.name),
                )
            )

        if spec.parent_kind is not None and parent_index is None:
            raise QueryContractError(
                spec.query_id,
                f"parent kind {spec.parent_kind.name} is declared "
                f"but the result has no {PARENT_NAME_COLUMN!r} column",
            )
        if spec.parent_kind is None and parent_index is not None:
            logger.warning(
                "Query %s returns %r without a parent kind; the column is ignored",
                spec.query_id,
                PARENT_NAME_COLUMN,
            )

        identity = ResultColumn(
            index=0,
            name=columns[0].name,
            kind=spec.column_kinds[0],
            visible=True,
            preformatted=False,
        )
        return cls(
            identity=identity,
            parent_index=parent_index,
            attribute_columns=tuple(attribute_columns),
            width=len(columns),
        )


# ---------------------------------------------------------------------------
# Text wrapping
# ---------------------------------------------------------------------------


def wrap_text(text: str, width: int = 80, line_break: str = "\r\n\t") -> str:
    """Break *text* into segments no longer than *width*.

    A segment ends after the last whitespace inside its window when there is
    one, otherwise exactly at *width*; so a word is never split while a
    breaking space exists. Segments are joined with *line_break*.
    """
    if width <= 0 or not text or len(text) <= width:
        return text

    segments: list[str] = []
    start = 0
    while start < len(text):
        if start + width >= len(text):
            segments.append(text[start:])
            break
        window = text[start : start + width]
        cut = max((i for i, ch in enumerate(window) if ch.isspace()), default=-1)
        stop = start + cut + 1 if cut >= 0 else start + width
        segments.append(text[start:stop])
        start = stop
    return line_break.join(segments)
