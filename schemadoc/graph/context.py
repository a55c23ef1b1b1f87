"""Build-once ownership of an object graph.

A GraphContext owns one introspector and one catalog. The first caller of
``graph`` triggers the build; every later caller receives the same frozen
graph. The graph is published with a single assignment after the build, so
readers never observe a half-built graph.
"""

from __future__ import annotations

import threading
from typing import Optional

from schemadoc.connectors.base import BaseIntrospector
from schemadoc.core.config import Settings
from schemadoc.graph.builder import ObjectGraph, ObjectGraphBuilder
from schemadoc.graph.ingestion import Catalog
from schemadoc.models.schema import DuplicateKeyPolicy


class GraphContext:
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
        self._graph: Optional[ObjectGraph] = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "GraphContext":
        """Create a context for the configured catalog source.

        Nothing is connected until the graph is first requested.
        """
        from schemadoc.connectors.offline import OfflineIntrospector
        from schemadoc.connectors.postgresql.catalog import build_catalog
        from schemadoc.connectors.postgresql.introspector import (
            ConnectionParams,
            PostgreSQLIntrospector,
        )

        introspector: BaseIntrospector
        if settings.OFFLINE_FOLDER:
            introspector = OfflineIntrospector(settings.OFFLINE_FOLDER)
        else:
            introspector = PostgreSQLIntrospector(
                ConnectionParams.from_settings(settings),
                schema=settings.PG_SCHEMA,
            )
        return cls(
            introspector,
            build_catalog(),
            duplicate_policy=settings.DUPLICATE_KEY_POLICY,
            wrap_width=settings.WRAP_WIDTH,
            wrap_line_break=settings.WRAP_LINE_BREAK,
            concat_line_break=settings.CONCAT_LINE_BREAK,
        )

    @property
    def built(self) -> bool:
        return self._graph is not None

    @property
    def graph(self) -> ObjectGraph:
        """The frozen graph, built on first access.

        Raises:
            GraphBuildError: the build failed; the next access retries it.
        """
        if self._graph is None:
            with self._lock:
                if self._graph is None:
                    self._graph = self._build()
        return self._graph

    def _build(self) -> ObjectGraph:
        builder = ObjectGraphBuilder(
            self.introspector,
            self.catalog,
            duplicate_policy=self.duplicate_policy,
            wrap_width=self.wrap_width,
            wrap_line_break=self.wrap_line_break,
            concat_line_break=self.concat_line_break,
        )
        try:
            return builder.build()
        finally:
            self.introspector.close()

    def close(self) -> None:
        self.introspector.close()
