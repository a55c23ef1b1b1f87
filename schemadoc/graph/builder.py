"""Object graph assembly.

Phase 1 creates one shell per catalog object. Phase 2 runs the ingestion specs
kind by kind and merges their rows into the shells' attribute tables, resolving
parents and object references by key. The finished graph is frozen.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Iterable, Iterator, Optional, Sequence

from schemadoc.connectors.base import BaseIntrospector, drain_value
from schemadoc.core.errors import (
    CatalogQueryError,
    ConnectivityError,
    DuplicateKeyError,
    GraphBuildError,
    GraphFrozenError,
    LinkResolutionError,
)
from schemadoc.graph.ingestion import (
    Catalog,
    IngestionSpec,
    QueryContract,
    ResultColumn,
    ShellQuery,
    wrap_text,
)
from schemadoc.models.keys import canonical_key, link_for, object_key
from schemadoc.models.schema import (
    Attribute,
    AttributeRow,
    BuildReport,
    DuplicateKeyPolicy,
    ObjectKind,
    SchemaObject,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


class ObjectGraph:
    """Objects keyed by canonical key.

    Iteration is in ascending key order. Every mutating method raises
    GraphFrozenError once freeze() has been called.
    """

    def __init__(self) -> None:
        self._objects: dict[str, SchemaObject] = {}
        self._frozen = False
        self.report = BuildReport()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def __getitem__(self, key: str) -> SchemaObject:
        return self._objects[key]

    def __contains__(self, key: object) -> bool:
        return key in self._objects

    def __len__(self) -> int:
        return len(self._objects)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def keys(self) -> list[str]:
        return sorted(self._objects)

    def values(self) -> list[SchemaObject]:
        return [self._objects[k] for k in self.keys()]

    def items(self) -> list[tuple[str, SchemaObject]]:
        return [(k, self._objects[k]) for k in self.keys()]

    def get(self, key: Optional[str]) -> Optional[SchemaObject]:
        if key is None:
            return None
        return self._objects.get(key)

    def lookup(self, kind: ObjectKind, name: str) -> Optional[SchemaObject]:
        """Find an object by kind and name through its canonical key."""
        return self._objects.get(canonical_key(kind, name))

    def by_kind(self, kind: ObjectKind) -> list[SchemaObject]:
        return [obj for obj in self.values() if obj.kind == kind]

    def parent_of(self, obj: SchemaObject) -> Optional[SchemaObject]:
        return self.get(obj.parent_key)

    def resolve(self, attribute: Attribute) -> Optional[SchemaObject]:
        """The object an attribute value refers to, if any."""
        return self.get(attribute.ref_key)

    def children_of(self, obj: SchemaObject) -> list[SchemaObject]:
        """Attached children in the order they were attached."""
        children = []
        for row in obj.attributes:
            if len(row) != 1:
                continue
            child = self.get(row[0].ref_key)
            if child is not None and child.parent_key == obj.key:
                children.append(child)
        return children

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ------------------------------------------------------------------
    # Mutation (only while building)
    # ------------------------------------------------------------------

    def _check_mutable(self) -> None:
        if self._frozen:
            raise GraphFrozenError("the object graph is frozen")

    def add(
        self,
        obj: SchemaObject,
        policy: DuplicateKeyPolicy = DuplicateKeyPolicy.OVERWRITE,
    ) -> bool:
        """Insert a shell. Returns False when the shell was not stored.

        Raises:
            DuplicateKeyError: the key exists and the policy is REJECT.
        """
        self._check_mutable()
        if obj.key in self._objects:
            self.report.duplicate_keys += 1
            if policy == DuplicateKeyPolicy.REJECT:
                raise DuplicateKeyError(obj.key)
            if policy == DuplicateKeyPolicy.KEEP_FIRST:
                logger.debug("Keeping first shell for duplicate key %s", obj.key)
                return False
            logger.debug("Overwriting shell for duplicate key %s", obj.key)
        self._objects[obj.key] = obj
        return True

    def append_row(self, obj: SchemaObject, row: AttributeRow) -> None:
        self._check_mutable()
        obj.attributes.append(row)

    def attach(self, child: SchemaObject, parent: SchemaObject, label: str) -> bool:
        """Register *child* under *parent*, at most once.

        Sets the child's parent, recomputes its link and appends one row to
        the parent naming the child by key. Returns False on re-attachment.
        """
        self._check_mutable()
        if child.attached:
            return False
        child.parent_key = parent.key
        child.link = link_for(child.kind, child.name, parent.kind, parent.name)
        parent.attributes.append(
            [Attribute(name=label, value=child.key, ref_key=child.key)]
        )
        child.attached = True
        self.report.attachments += 1
        return True

    def freeze(self) -> None:
        """Publish read-only copies of every object and refuse further mutation."""
        if self._frozen:
            return
        self._objects = {key: obj.frozen_copy() for key, obj in self._objects.items()}
        self._frozen = True


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


def _text(value: Any) -> str:
    drained = drain_value(value)
    return "" if drained is None else drained.strip()


def _find_attribute(row: AttributeRow, name: str) -> Optional[int]:
    wanted = name.lower()
    for position, attribute in enumerate(row):
        if attribute.name.lower() == wanted:
            return position
    return None


class ObjectGraphBuilder:
    """Build an ObjectGraph from a catalog through an introspector.

    The build is single-threaded: one query runs at a time, shell queries
    first, then the ingestion specs in the catalog's kind order.
    """

    def __init__(
        self,
        introspector: BaseIntrospector,
        catalog: Catalog,
        duplicate_policy: DuplicateKeyPolicy = DuplicateKeyPolicy.OVERWRITE,
        wrap_width: int = 80,
        wrap_line_break: str = "\r\n\t",
        concat_line_break: str = "\r\n",
    ):
        self.introspector = introspector
        self.catalog = catalog
        self.duplicate_policy = duplicate_policy
        self.wrap_width = wrap_width
        self.wrap_line_break = wrap_line_break
        self.concat_line_break = concat_line_break

    def build(self) -> ObjectGraph:
        """Run both phases and return the frozen graph.

        Raises:
            GraphBuildError: the catalog source is unreachable, or a duplicate
                key was met under the REJECT policy.
        """
        t0 = time.monotonic()
        graph = ObjectGraph()
        logger.info("Building object graph from catalog %s", self.catalog.name)
        try:
            self.create_shells(graph)
            for kind in self.catalog.kind_order:
                for spec in self.catalog.specs_for(kind):
                    self.ingest(graph, spec)
        except (ConnectivityError, DuplicateKeyError) as exc:
            logger.error("Object graph build failed: %s", exc)
            raise GraphBuildError(str(exc)) from exc

        graph.report.duration_s = time.monotonic() - t0
        graph.freeze()
        report = graph.report
        logger.info(
            "Object graph built: %d objects, %d rows ingested, %d dangling, "
            "%d attachments, %d failed queries in %.2fs",
            len(graph),
            report.rows_ingested,
            report.dangling_rows,
            report.attachments,
            len(report.failed_queries),
            report.duration_s,
        )
        return graph

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------

    def create_shells(self, graph: ObjectGraph) -> None:
        for query in self.catalog.shell_queries:
            try:
                result = self.introspector.fetch(query.query_id, query.sql)
                try:
                    for values in result:
                        shell = self._make_shell(graph, query, values)
                        if shell is not None and graph.add(shell, self.duplicate_policy):
                            graph.report.shells_created += 1
                finally:
                    result.close()
            except CatalogQueryError as exc:
                logger.error("Shell query %s failed: %s", query.query_id, exc.detail)
                graph.report.failed_queries[query.query_id] = exc.detail

    def _make_shell(
        self,
        graph: ObjectGraph,
        query: ShellQuery,
        values: Sequence[Any],
    ) -> Optional[SchemaObject]:
        try:
            if query.child_kind is None:
                kind = ObjectKind.from_catalog(_text(values[0]))
                name = _text(values[1])
                return SchemaObject(
                    key=canonical_key(kind, name),
                    kind=kind,
                    name=name,
                    link=link_for(kind, name),
                )

            kind = query.child_kind
            name = _text(values[0])
            parent_name = _text(values[1])
            parent_kind = ObjectKind.from_catalog(_text(values[2]))
            parent = graph.get(canonical_key(parent_kind, parent_name))
            return SchemaObject(
                key=object_key(kind, name, parent_kind, parent_name),
                kind=kind,
                name=name,
                link=link_for(
                    kind,
                    name,
                    parent.kind if parent else None,
                    parent.name if parent else None,
                ),
                parent_key=parent.key if parent else None,
            )
        except (ValueError, IndexError, LinkResolutionError) as exc:
            logger.warning("Skipping shell row %r from %s: %s", values, query.query_id, exc)
            return None

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------

    def ingest(self, graph: ObjectGraph, spec: IngestionSpec) -> None:
        """Merge the rows of one spec into the graph.

        A failing query, or a row whose width differs from the result header,
        abandons the rest of its rows; rows merged before the failure stay in
        the graph.
        """
        logger.debug("Ingesting %s for %s", spec.query_id, spec.kind.name)
        try:
            result = self.introspector.fetch(spec.query_id, spec.sql)
            try:
                if not result.columns:
                    return
                contract = QueryContract.check(spec, result.columns)
                self._ingest_rows(graph, spec, contract, result)
            finally:
                result.close()
        except CatalogQueryError as exc:
            logger.error(
                "Ingestion query %s (%s) failed: %s",
                spec.query_id,
                spec.kind.name,
                exc.detail,
            )
            graph.report.failed_queries[spec.query_id] = exc.detail

    def _ingest_rows(
        self,
        graph: ObjectGraph,
        spec: IngestionSpec,
        contract: QueryContract,
        rows: Iterable[Sequence[Any]],
    ) -> None:
        previous_key: Optional[str] = None
        current_row: Optional[AttributeRow] = None

        for number, values in enumerate(rows, start=1):
            graph.report.rows_read += 1
            if len(values) != contract.width:
                raise CatalogQueryError(
                    spec.query_id,
                    f"row {number} has {len(values)} values, "
                    f"expected {contract.width}",
                )
            name = _text(values[0])
            parent_name = (
                _text(values[contract.parent_index])
                if contract.parent_index is not None
                else None
            )
            key = object_key(spec.kind, name, spec.parent_kind, parent_name)
            continuing = key == previous_key
            previous_key = key

            obj = graph.get(key)
            if obj is None:
                logger.debug("No object %s for row of %s, skipped", key, spec.query_id)
                graph.report.dangling_rows += 1
                current_row = None
                continue

            if continuing and spec.concatenate and current_row:
                self._merge_row(graph, spec, contract, current_row, values)
            else:
                row = [
                    self._make_attribute(graph, spec, column, values[column.index])
                    for column in contract.attribute_columns
                ]
                if row:
                    graph.append_row(obj, row)
                    current_row = row
                else:
                    current_row = None
            graph.report.rows_ingested += 1

            if (
                spec.parent_kind is not None
                and parent_name
                and not continuing
                and not spec.concatenate
                and not obj.attached
            ):
                parent = graph.get(canonical_key(spec.parent_kind, parent_name))
                if parent is not None:
                    graph.attach(obj, parent, contract.identity.name)

    def _merge_row(
        self,
        graph: ObjectGraph,
        spec: IngestionSpec,
        contract: QueryContract,
        row: AttributeRow,
        values: Sequence[Any],
    ) -> None:
        for column in contract.attribute_columns:
            position = _find_attribute(row, column.name)
            if position is None:
                row.append(self._make_attribute(graph, spec, column, values[column.index]))
                continue
            value = _text(values[column.index])
            if spec.wrap:
                value = wrap_text(value, self.wrap_width, self.wrap_line_break)
            attribute = row[position]
            row[position] = attribute.model_copy(
                update={"value": attribute.value + self.concat_line_break + value}
            )

    def _make_attribute(
        self,
        graph: ObjectGraph,
        spec: IngestionSpec,
        column: ResultColumn,
        raw: Any,
    ) -> Attribute:
        value = _text(raw)
        ref_key = None
        if column.kind is not None and value:
            candidate = canonical_key(column.kind, value)
            if candidate in graph:
                ref_key = candidate
        if spec.wrap:
            value = wrap_text(value, self.wrap_width, self.wrap_line_break)
        return Attribute(
            name=column.name,
            value=value,
            visible=column.visible,
            preformatted=column.preformatted,
            ref_key=ref_key,
        )
