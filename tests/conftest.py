"""Shared fixtures for the unit tests.

FakeIntrospector serves canned result sets by query id, so the builder can be
exercised without a database. The sample catalog describes a small HR schema.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

import pytest

from schemadoc.connectors.base import BaseIntrospector, ColumnMeta, ResultSet
from schemadoc.graph.ingestion import Catalog, IngestionSpec, ShellQuery
from schemadoc.models.schema import ObjectKind

K = ObjectKind


class FakeIntrospector(BaseIntrospector):
    """In-memory catalog source keyed by query id."""

    def __init__(self) -> None:
        self.results: dict[str, tuple[list[str], Iterable[tuple[Any, ...]]]] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []
        self.closed = 0
        self.closed_results: list[str] = []

    def add(self, query_id: str, columns: list[str], rows: Iterable[tuple[Any, ...]]) -> None:
        self.results[query_id] = (columns, rows)

    def fail(self, query_id: str, exc: Exception) -> None:
        self.errors[query_id] = exc

    def test_connection(self) -> bool:
        return True

    def fetch(self, query_id: str, sql: str) -> ResultSet:
        self.calls.append(query_id)
        if query_id in self.errors:
            raise self.errors[query_id]
        if query_id not in self.results:
            return ResultSet(query_id=query_id)
        columns, rows = self.results[query_id]
        return ResultSet(
            query_id=query_id,
            columns=[ColumnMeta(name=c) for c in columns],
            rows=rows,
            on_close=lambda: self.closed_results.append(query_id),
        )

    def close(self) -> None:
        self.closed += 1


def make_catalog(
    specs: Optional[dict[ObjectKind, list[IngestionSpec]]] = None,
    kind_order: Optional[list[ObjectKind]] = None,
) -> Catalog:
    return Catalog(
        name="fake",
        shell_queries=[
            ShellQuery("objects", "-- objects"),
            ShellQuery("columns", "-- columns", child_kind=K.COLUMN),
        ],
        kind_order=kind_order or list(SAMPLE_KIND_ORDER),
        specs=specs if specs is not None else sample_specs(),
    )


SAMPLE_KIND_ORDER = [
    K.TABLE,
    K.VIEW,
    K.CONSTRAINT,
    K.INDEX,
    K.TRIGGER,
    K.PACKAGE,
    K.SEQUENCE,
    K.COLUMN,
]


def sample_specs() -> dict[ObjectKind, list[IngestionSpec]]:
    return {
        K.TABLE: [
            IngestionSpec("table_comments", "--", K.TABLE, (K.TABLE, None)),
        ],
        K.CONSTRAINT: [
            IngestionSpec(
                "primary_keys", "--", K.CONSTRAINT, (K.CONSTRAINT, K.TABLE),
                parent_kind=K.TABLE,
            ),
            IngestionSpec(
                "foreign_keys", "--", K.CONSTRAINT, (K.CONSTRAINT, K.TABLE, K.TABLE),
                parent_kind=K.TABLE,
            ),
        ],
        K.PACKAGE: [
            IngestionSpec(
                "package_code", "--", K.PACKAGE, (K.PACKAGE, None),
                concatenate=True, wrap=True,
            ),
        ],
        K.SEQUENCE: [
            IngestionSpec("sequences", "--", K.SEQUENCE, (K.SEQUENCE, None, None)),
        ],
        K.COLUMN: [
            IngestionSpec(
                "table_columns", "--", K.COLUMN, (K.COLUMN, K.TABLE, None),
                parent_kind=K.TABLE,
            ),
        ],
    }


def load_sample(fake: FakeIntrospector) -> FakeIntrospector:
    fake.add(
        "objects",
        ["object_type", "object_name"],
        [
            ("TABLE", "EMPLOYEES"),
            ("TABLE", "DEPARTMENTS"),
            ("VIEW", "EMP_V"),
            ("CONSTRAINT", "EMP_PK"),
            ("CONSTRAINT", "EMP_DEPT_FK"),
            ("PACKAGE", "HR_PKG"),
            ("SEQUENCE", "EMP_SEQ"),
        ],
    )
    fake.add(
        "columns",
        ["object_name", "parent_name", "parent_type"],
        [
            ("ID", "EMPLOYEES", "TABLE"),
            ("NAME", "EMPLOYEES", "TABLE"),
            ("DEPT_ID", "EMPLOYEES", "TABLE"),
            ("ID", "DEPARTMENTS", "TABLE"),
        ],
    )
    fake.add(
        "table_comments",
        ["Table", "Description"],
        [("EMPLOYEES", "  All staff  "), ("DEPARTMENTS", None)],
    )
    fake.add("primary_keys", ["Primary key", "parent_name"], [("EMP_PK", "EMPLOYEES")])
    fake.add(
        "foreign_keys",
        ["Foreign key", "parent_name", "Referenced table"],
        [("EMP_DEPT_FK", "EMPLOYEES", "DEPARTMENTS")],
    )
    fake.add(
        "package_code",
        ["Package", "Code"],
        [("HR_PKG", "l1"), ("HR_PKG", "l2"), ("HR_PKG", "l3")],
    )
    fake.add(
        "sequences",
        ["Sequence", "Increment", "_last_value"],
        [("EMP_SEQ", 1, 42)],
    )
    fake.add(
        "table_columns",
        ["Column", "parent_name", "Datatype"],
        [
            ("ID", "EMPLOYEES", "integer"),
            ("NAME", "EMPLOYEES", "varchar(100)"),
            ("DEPT_ID", "EMPLOYEES", "integer"),
            ("ID", "DEPARTMENTS", "integer"),
        ],
    )
    return fake


@pytest.fixture()
def fake() -> FakeIntrospector:
    return FakeIntrospector()


@pytest.fixture()
def sample_introspector() -> FakeIntrospector:
    return load_sample(FakeIntrospector())


@pytest.fixture()
def sample_catalog() -> Catalog:
    return make_catalog()


@pytest.fixture()
def catalog_factory():
    """make_catalog(specs=None, kind_order=None) for tests with their own specs."""
    return make_catalog
