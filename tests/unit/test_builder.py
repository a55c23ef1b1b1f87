"""Unit tests for ObjectGraphBuilder and ObjectGraph.

Covers:
  - Shell creation and key uniqueness under every duplicate key policy
  - Attribute rows: order, trimming, hidden and preformatted flags
  - Concatenation mode and wrapping of merged code
  - Parent attachment, link recomputation and idempotence
  - Reference resolution and dangling rows
  - Partial failure of a single query, fatal connectivity loss
  - The frozen graph
"""

import pytest
from pydantic import ValidationError

from schemadoc.core.errors import (
    CatalogQueryError,
    ConnectivityError,
    GraphBuildError,
    GraphFrozenError,
)
from schemadoc.graph.builder import ObjectGraph, ObjectGraphBuilder
from schemadoc.graph.ingestion import IngestionSpec
from schemadoc.models.schema import (
    Attribute,
    DuplicateKeyPolicy,
    ObjectKind,
    SchemaObject,
)

K = ObjectKind


@pytest.fixture()
def graph(sample_introspector, sample_catalog) -> ObjectGraph:
    return ObjectGraphBuilder(sample_introspector, sample_catalog).build()


def _shell(kind: ObjectKind, name: str) -> SchemaObject:
    return SchemaObject(key=f"{kind.value}.{name.lower()}", kind=kind, name=name)


# ---------------------------------------------------------------------------
# Phase 1
# ---------------------------------------------------------------------------


class TestShells:
    def test_every_object_gets_a_shell(self, graph):
        assert "table.employees" in graph
        assert "view.emp_v" in graph
        assert "sequence.emp_seq" in graph
        assert "table.employees.column.name" in graph
        assert "table.departments.column.id" in graph
        assert len(graph) == 11

    def test_shell_keeps_display_name_and_default_link(self, graph):
        table = graph["table.employees"]
        assert table.name == "EMPLOYEES"
        assert table.kind == K.TABLE
        assert table.link == "table-employees.html"
        assert graph["sequence.emp_seq"].link == "sequences-list.html#EMP_SEQ"
        assert graph["view.emp_v"].attributes == ()

    def test_column_shell_has_parent_from_the_start(self, graph):
        column = graph["table.employees.column.name"]
        assert column.parent_key == "table.employees"
        assert column.link == "table-employees.html#col-name"

    def test_unknown_kind_label_is_skipped(self, fake, catalog_factory):
        fake.add(
            "objects",
            ["object_type", "object_name"],
            [("SYNONYM", "S1"), ("TABLE", "T1"), ("TABLE", None)],
        )
        graph = ObjectGraphBuilder(fake, catalog_factory(specs={})).build()
        assert graph.keys() == ["table.t1"]

    def test_iteration_is_in_key_order(self, graph):
        keys = list(graph)
        assert keys == sorted(keys)
        assert [k for k, _ in graph.items()] == keys


class TestDuplicateKeys:
    def _build(self, fake, catalog_factory, policy):
        fake.add(
            "objects",
            ["object_type", "object_name"],
            [("TABLE", "Emp"), ("TABLE", "EMP")],
        )
        return ObjectGraphBuilder(fake, catalog_factory(specs={}), duplicate_policy=policy).build()

    def test_last_write_wins_by_default(self, fake, catalog_factory):
        graph = self._build(fake, catalog_factory, DuplicateKeyPolicy.OVERWRITE)
        assert len(graph) == 1
        assert graph["table.emp"].name == "EMP"
        assert graph.report.duplicate_keys == 1

    def test_keep_first(self, fake, catalog_factory):
        graph = self._build(fake, catalog_factory, DuplicateKeyPolicy.KEEP_FIRST)
        assert graph["table.emp"].name == "Emp"
        assert graph.report.shells_created == 1

    def test_reject_fails_the_build(self, fake, catalog_factory):
        with pytest.raises(GraphBuildError, match="table.emp"):
            self._build(fake, catalog_factory, DuplicateKeyPolicy.REJECT)


# ---------------------------------------------------------------------------
# Phase 2
# ---------------------------------------------------------------------------


class TestAttributeRows:
    def test_values_are_trimmed_and_none_is_empty(self, graph):
        (emp_row,) = graph["table.employees"].attributes[:1]
        assert emp_row[0].name == "Description"
        assert emp_row[0].value == "All staff"
        dept_row = graph["table.departments"].attributes[0]
        assert dept_row[0].value == ""

    def test_identity_column_is_not_an_attribute(self, graph):
        names = [a.name for row in graph["table.employees"].attributes for a in row]
        assert "Table" not in names

    def test_hidden_column(self, graph):
        row = graph["sequence.emp_seq"].attributes[0]
        assert [(a.name, a.value, a.visible) for a in row] == [
            ("Increment", "1", True),
            ("_last_value", "42", False),
        ]

    def test_code_column_is_preformatted(self, graph):
        (row,) = graph["package.hr_pkg"].attributes
        assert row[0].preformatted is True

    def test_rows_keep_arrival_order(self, fake, catalog_factory):
        fake.add("objects", ["object_type", "object_name"], [("TABLE", "T")])
        fake.add("opts", ["Table", "Option"], [("T", "b"), ("T", "a"), ("T", "c")])
        specs = {K.TABLE: [IngestionSpec("opts", "--", K.TABLE, (K.TABLE, None))]}
        graph = ObjectGraphBuilder(fake, catalog_factory(specs=specs)).build()
        values = [row[0].value for row in graph["table.t"].attributes]
        assert values == ["b", "a", "c"]

    def test_specs_of_a_kind_run_in_declared_order(self, fake, catalog_factory):
        fake.add("objects", ["object_type", "object_name"], [("VIEW", "V")])
        fake.add("first", ["View", "A"], [("V", "1")])
        fake.add("second", ["View", "B"], [("V", "2")])
        specs = {
            K.VIEW: [
                IngestionSpec("first", "--", K.VIEW, (K.VIEW, None)),
                IngestionSpec("second", "--", K.VIEW, (K.VIEW, None)),
            ]
        }
        graph = ObjectGraphBuilder(fake, catalog_factory(specs=specs)).build()
        assert [row[0].name for row in graph["view.v"].attributes] == ["A", "B"]

    def test_large_values_are_drained(self, fake, catalog_factory):
        fake.add("objects", ["object_type", "object_name"], [("VIEW", "V")])
        fake.add("code", ["View", "Code"], [("V", memoryview(b"select 1"))])
        specs = {K.VIEW: [IngestionSpec("code", "--", K.VIEW, (K.VIEW, None))]}
        graph = ObjectGraphBuilder(fake, catalog_factory(specs=specs)).build()
        assert graph["view.v"].attributes[0][0].value == "select 1"


class TestConcatenation:
    def test_three_lines_merge_into_one_row(self, graph):
        (row,) = graph["package.hr_pkg"].attributes
        assert row[0].name == "Code"
        assert row[0].value == "l1\r\nl2\r\nl3"

    def test_new_key_starts_a_new_row(self, fake, catalog_factory):
        fake.add("objects", ["object_type", "object_name"], [("PACKAGE", "A"), ("PACKAGE", "B")])
        fake.add("code", ["Package", "Code"], [("A", "a1"), ("B", "b1"), ("A", "a2")])
        specs = {
            K.PACKAGE: [
                IngestionSpec("code", "--", K.PACKAGE, (K.PACKAGE, None), concatenate=True)
            ]
        }
        graph = ObjectGraphBuilder(fake, catalog_factory(specs=specs)).build()
        assert [r[0].value for r in graph["package.a"].attributes] == ["a1", "a2"]
        assert [r[0].value for r in graph["package.b"].attributes] == ["b1"]

    def test_without_concatenation_each_row_stays(self, fake, catalog_factory):
        fake.add("objects", ["object_type", "object_name"], [("PACKAGE", "A")])
        fake.add("code", ["Package", "Code"], [("A", "a1"), ("A", "a2")])
        specs = {K.PACKAGE: [IngestionSpec("code", "--", K.PACKAGE, (K.PACKAGE, None))]}
        graph = ObjectGraphBuilder(fake, catalog_factory(specs=specs)).build()
        assert len(graph["package.a"].attributes) == 2

    def test_merged_lines_are_wrapped(self, fake, catalog_factory):
        fake.add("objects", ["object_type", "object_name"], [("PACKAGE", "A")])
        fake.add(
            "code",
            ["Package", "Code"],
            [("A", "short"), ("A", "the quick brown fox jumps over")],
        )
        specs = {
            K.PACKAGE: [
                IngestionSpec(
                    "code", "--", K.PACKAGE, (K.PACKAGE, None), concatenate=True, wrap=True
                )
            ]
        }
        builder = ObjectGraphBuilder(
            fake, catalog_factory(specs=specs), wrap_width=10, wrap_line_break="|"
        )
        graph = builder.build()
        (row,) = graph["package.a"].attributes
        assert row[0].value == "short\r\nthe quick |brown fox |jumps over"

    def test_package_body_follows_header(self, fake, catalog_factory):
        fake.add("objects", ["object_type", "object_name"], [("PACKAGE", "P")])
        fake.add("spec_code", ["Package", "Code"], [("P", "s1"), ("P", "s2")])
        fake.add("body_code", ["Package", "Body code"], [("P", "b1"), ("P", "b2")])
        specs = {
            K.PACKAGE: [
                IngestionSpec("spec_code", "--", K.PACKAGE, (K.PACKAGE, None), concatenate=True),
                IngestionSpec("body_code", "--", K.PACKAGE, (K.PACKAGE, None), concatenate=True),
            ]
        }
        graph = ObjectGraphBuilder(fake, catalog_factory(specs=specs)).build()
        rows = graph["package.p"].attributes
        assert [(r[0].name, r[0].value) for r in rows] == [
            ("Code", "s1\r\ns2"),
            ("Body code", "b1\r\nb2"),
        ]
        assert all(r[0].preformatted for r in rows)


class TestAttachment:
    def test_constraint_is_attached_to_its_table(self, graph):
        pk = graph["constraint.emp_pk"]
        assert pk.attached is True
        assert pk.parent_key == "table.employees"
        assert pk.link == "table-employees.html#con-emp_pk"
        assert graph.parent_of(pk) is graph["table.employees"]

    def test_parent_gets_one_row_naming_the_child(self, graph):
        table = graph["table.employees"]
        child_rows = [
            row for row in table.attributes if len(row) == 1 and row[0].ref_key == "constraint.emp_pk"
        ]
        assert len(child_rows) == 1
        assert child_rows[0][0].name == "Primary key"
        assert child_rows[0][0].value == "constraint.emp_pk"

    def test_children_in_attachment_order(self, graph):
        children = graph.children_of(graph["table.employees"])
        assert [c.key for c in children] == [
            "constraint.emp_pk",
            "constraint.emp_dept_fk",
            "table.employees.column.id",
            "table.employees.column.name",
            "table.employees.column.dept_id",
        ]

    def test_table_rows_precede_child_rows(self, graph):
        rows = graph["table.employees"].attributes
        assert rows[0][0].name == "Description"
        assert all(len(r) == 1 and r[0].ref_key for r in rows[1:])

    def test_attach_is_idempotent(self):
        graph = ObjectGraph()
        table = _shell(K.TABLE, "T")
        index = _shell(K.INDEX, "IX")
        graph.add(table)
        graph.add(index)
        assert graph.attach(index, table, "Index") is True
        assert graph.attach(index, table, "Index") is False
        assert len(table.attributes) == 1
        assert graph.report.attachments == 1

    def test_second_spec_does_not_reattach(self, fake, catalog_factory):
        fake.add("objects", ["object_type", "object_name"], [("TABLE", "T"), ("INDEX", "IX")])
        fake.add("ix_a", ["Index", "parent_name", "Type"], [("IX", "T", "btree")])
        fake.add("ix_b", ["Index", "parent_name", "Uniqueness"], [("IX", "T", "UNIQUE")])
        specs = {
            K.INDEX: [
                IngestionSpec("ix_a", "--", K.INDEX, (K.INDEX, K.TABLE, None), parent_kind=K.TABLE),
                IngestionSpec("ix_b", "--", K.INDEX, (K.INDEX, K.TABLE, None), parent_kind=K.TABLE),
            ]
        }
        graph = ObjectGraphBuilder(fake, catalog_factory(specs=specs)).build()
        assert len(graph["table.t"].attributes) == 1
        assert len(graph["index.ix"].attributes) == 2

    def test_concatenating_spec_does_not_attach(self, fake, catalog_factory):
        fake.add("objects", ["object_type", "object_name"], [("TABLE", "T"), ("TRIGGER", "TR")])
        fake.add("code", ["Trigger", "parent_name", "Code"], [("TR", "T", "l1"), ("TR", "T", "l2")])
        specs = {
            K.TRIGGER: [
                IngestionSpec(
                    "code", "--", K.TRIGGER, (K.TRIGGER, K.TABLE, None),
                    parent_kind=K.TABLE, concatenate=True,
                )
            ]
        }
        graph = ObjectGraphBuilder(fake, catalog_factory(specs=specs)).build()
        trigger = graph["trigger.tr"]
        assert trigger.attached is False
        assert trigger.link == "trigger-tr.html"
        assert graph["table.t"].attributes == ()

    def test_dangling_parent_keeps_default_link(self, fake, catalog_factory):
        fake.add("objects", ["object_type", "object_name"], [("INDEX", "IX")])
        fake.add("ix", ["Index", "parent_name", "Type"], [("IX", "GONE", "btree")])
        specs = {
            K.INDEX: [
                IngestionSpec("ix", "--", K.INDEX, (K.INDEX, K.TABLE, None), parent_kind=K.TABLE)
            ]
        }
        graph = ObjectGraphBuilder(fake, catalog_factory(specs=specs)).build()
        index = graph["index.ix"]
        assert index.attached is False
        assert index.parent_key is None
        assert index.link == "index-ix.html"
        assert index.attributes[0][0].value == "btree"


class TestReferences:
    def test_value_naming_an_object_is_resolved(self, graph):
        fk = graph["constraint.emp_dept_fk"]
        (ref,) = fk.find_attributes("referenced table")
        assert ref.value == "DEPARTMENTS"
        assert graph.resolve(ref) is graph["table.departments"]

    def test_unknown_reference_stays_plain(self, fake, catalog_factory):
        fake.add("objects", ["object_type", "object_name"], [("TABLE", "A")])
        fake.add("refs", ["Table", "Referenced by"], [("A", "B")])
        specs = {K.TABLE: [IngestionSpec("refs", "--", K.TABLE, (K.TABLE, K.TABLE))]}
        graph = ObjectGraphBuilder(fake, catalog_factory(specs=specs)).build()
        attribute = graph["table.a"].attributes[0][0]
        assert attribute.value == "B"
        assert attribute.ref_key is None
        assert graph.resolve(attribute) is None

    def test_rows_for_missing_objects_are_dangling(self, fake, catalog_factory):
        fake.add("objects", ["object_type", "object_name"], [("TABLE", "A")])
        fake.add("c", ["Table", "Comment"], [("A", "x"), ("NOPE", "y"), ("A", "z")])
        specs = {K.TABLE: [IngestionSpec("c", "--", K.TABLE, (K.TABLE, None))]}
        graph = ObjectGraphBuilder(fake, catalog_factory(specs=specs)).build()
        assert [r[0].value for r in graph["table.a"].attributes] == ["x", "z"]
        assert graph.report.dangling_rows == 1
        assert graph.report.rows_ingested == 2
        assert graph.report.rows_read == 3


class TestLookup:
    def test_lookup_by_kind_and_name_any_case(self, graph):
        assert graph.lookup(K.TABLE, "employees") is graph["table.employees"]
        assert graph.lookup(K.VIEW, "employees") is None

    def test_by_kind(self, graph):
        assert [o.name for o in graph.by_kind(K.TABLE)] == ["DEPARTMENTS", "EMPLOYEES"]


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    def test_failed_query_only_skips_that_query(self, sample_introspector, sample_catalog):
        sample_introspector.fail("primary_keys", CatalogQueryError("primary_keys", "boom"))
        graph = ObjectGraphBuilder(sample_introspector, sample_catalog).build()
        assert graph.report.failed_queries == {"primary_keys": "boom"}
        assert graph["constraint.emp_pk"].attached is False
        assert graph["constraint.emp_dept_fk"].attached is True

    def test_rows_before_a_failure_are_kept(self, fake, catalog_factory):
        def rows():
            yield ("A", "first")
            raise CatalogQueryError("c", "connection reset by peer")

        fake.add("objects", ["object_type", "object_name"], [("TABLE", "A")])
        fake.add("c", ["Table", "Comment"], rows())
        specs = {K.TABLE: [IngestionSpec("c", "--", K.TABLE, (K.TABLE, None))]}
        graph = ObjectGraphBuilder(fake, catalog_factory(specs=specs)).build()
        assert [r[0].value for r in graph["table.a"].attributes] == ["first"]
        assert "c" in graph.report.failed_queries

    def test_contract_violation_skips_the_query(self, fake, catalog_factory):
        fake.add("objects", ["object_type", "object_name"], [("INDEX", "IX")])
        fake.add("ix", ["Index", "Type"], [("IX", "btree")])
        specs = {
            K.INDEX: [
                IngestionSpec("ix", "--", K.INDEX, (K.INDEX, None), parent_kind=K.TABLE)
            ]
        }
        graph = ObjectGraphBuilder(fake, catalog_factory(specs=specs)).build()
        assert graph["index.ix"].attributes == ()
        assert "parent_name" in graph.report.failed_queries["ix"]
        assert fake.closed_results == ["objects", "ix"]

    def test_short_row_fails_only_its_query(self, fake, catalog_factory):
        fake.add("objects", ["object_type", "object_name"], [("TABLE", "A")])
        fake.add("bad", ["Table", "Comment"], [("A",)])
        fake.add("good", ["Table", "Owner"], [("A", "hr")])
        specs = {
            K.TABLE: [
                IngestionSpec("bad", "--", K.TABLE, (K.TABLE, None)),
                IngestionSpec("good", "--", K.TABLE, (K.TABLE, None)),
            ]
        }
        graph = ObjectGraphBuilder(fake, catalog_factory(specs=specs)).build()
        assert "row 1 has 1 values, expected 2" in graph.report.failed_queries["bad"]
        assert "good" not in graph.report.failed_queries
        assert [[a.name for a in row] for row in graph["table.a"].attributes] == [["Owner"]]

    def test_long_row_keeps_the_rows_before_it(self, fake, catalog_factory):
        fake.add("objects", ["object_type", "object_name"], [("TABLE", "A"), ("TABLE", "B")])
        fake.add("c", ["Table", "Comment"], [("A", "first"), ("B", "second", "extra")])
        specs = {K.TABLE: [IngestionSpec("c", "--", K.TABLE, (K.TABLE, None))]}
        graph = ObjectGraphBuilder(fake, catalog_factory(specs=specs)).build()
        assert graph["table.a"].attributes[0][0].value == "first"
        assert graph["table.b"].attributes == ()
        assert "row 2 has 3 values" in graph.report.failed_queries["c"]

    def test_failed_shell_query_is_reported(self, sample_introspector, sample_catalog):
        sample_introspector.fail("columns", CatalogQueryError("columns", "denied"))
        graph = ObjectGraphBuilder(sample_introspector, sample_catalog).build()
        assert "table.employees.column.id" not in graph
        assert graph.report.failed_queries == {"columns": "denied"}

    def test_connectivity_loss_fails_the_build(self, sample_introspector, sample_catalog):
        sample_introspector.fail("sequences", ConnectivityError("server closed the connection"))
        with pytest.raises(GraphBuildError) as excinfo:
            ObjectGraphBuilder(sample_introspector, sample_catalog).build()
        assert isinstance(excinfo.value.__cause__, ConnectivityError)


class TestFrozenGraph:
    def test_graph_is_frozen_after_build(self, graph):
        assert graph.frozen is True

    def test_mutation_after_freeze_raises(self, graph):
        table = graph["table.employees"]
        with pytest.raises(GraphFrozenError):
            graph.add(_shell(K.VIEW, "NEW"))
        with pytest.raises(GraphFrozenError):
            graph.append_row(table, [Attribute(name="x")])
        with pytest.raises(GraphFrozenError):
            graph.attach(graph["constraint.emp_pk"], table, "Primary key")

    def test_published_objects_are_read_only(self, graph):
        table = graph["table.employees"]
        rows_before = len(table.attributes)
        with pytest.raises(ValidationError):
            table.link = "elsewhere.html"
        with pytest.raises(ValidationError):
            table.parent_key = "table.other"
        with pytest.raises(AttributeError):
            table.attributes.append((Attribute(name="x"),))
        with pytest.raises(AttributeError):
            table.attributes[0].append(Attribute(name="x"))
        with pytest.raises(ValidationError):
            table.attributes[0][0].value = "changed"
        assert len(table.attributes) == rows_before
        assert table.link == "table-employees.html"

    def test_freeze_keeps_parent_identity(self, graph):
        column = graph["table.employees.column.id"]
        assert graph.parent_of(column) is graph["table.employees"]
        assert column in graph.children_of(graph["table.employees"])

    def test_every_result_set_is_closed(self, sample_introspector, sample_catalog):
        ObjectGraphBuilder(sample_introspector, sample_catalog).build()
        assert sorted(sample_introspector.closed_results) == sorted(sample_introspector.results)

    def test_report_counts(self, graph):
        report = graph.report
        assert report.shells_created == 11
        assert report.duplicate_keys == 0
        assert report.attachments == 6
        assert report.failed_queries == {}
        assert report.duration_s >= 0
