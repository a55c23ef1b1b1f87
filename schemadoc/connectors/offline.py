"""Offline catalog source: result sets exported to a JSON folder.

Layout of an offline folder:
  manifest.json      - {catalog, exported_at, queries: {id: row_count}, failed: {id: detail}}
  <query_id>.json    - {query_id, columns: [{name, type_name}, …], rows: [[…], …]}

A query that failed during export fails again on replay with the recorded
detail; a query without a file replays as an empty result set.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any

import jsonschema
from jsonschema import ValidationError

from schemadoc.connectors.base import AuthMode, BaseIntrospector, ColumnMeta, ResultSet
from schemadoc.core.errors import CatalogQueryError
from schemadoc.graph.ingestion import Catalog

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"

RESULT_SET_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["query_id", "columns", "rows"],
    "properties": {
        "query_id": {"type": "string", "minLength": 1},
        "columns": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string"},
                    "type_name": {"type": ["string", "null"]},
                },
            },
        },
        "rows": {
            "type": "array",
            "items": {
                "type": "array",
                "items": {"type": ["string", "number", "boolean", "null"]},
            },
        },
    },
    "additionalProperties": True,
}

MANIFEST_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "catalog": {"type": "string"},
        "exported_at": {"type": "string"},
        "queries": {"type": "object", "additionalProperties": {"type": "integer"}},
        "failed": {"type": "object", "additionalProperties": {"type": "string"}},
    },
    "additionalProperties": True,
}


def _result_path(folder: str, query_id: str) -> str:
    return os.path.join(folder, f"{query_id}.json")


class OfflineIntrospector(BaseIntrospector):
    """Replay result sets from a folder written by export_to_folder()."""

    auth_mode = AuthMode.OFFLINE

    def __init__(self, folder: str):
        self.folder = folder
        self._failed: dict[str, str] | None = None

    def _load_failed(self) -> dict[str, str]:
        if self._failed is None:
            self._failed = {}
            path = os.path.join(self.folder, MANIFEST_FILE)
            if os.path.exists(path):
                try:
                    with open(path) as f:
                        manifest = json.load(f)
                    jsonschema.validate(instance=manifest, schema=MANIFEST_SCHEMA)
                except (OSError, json.JSONDecodeError) as exc:
                    logger.warning("Ignoring unreadable manifest %s: %s", path, exc)
                    return self._failed
                except ValidationError as exc:
                    logger.warning("Ignoring invalid manifest %s: %s", path, exc.message)
                    return self._failed
                self._failed = dict(manifest.get("failed", {}))
        return self._failed

    def test_connection(self) -> bool:
        return os.path.isdir(self.folder)

    def fetch(self, query_id: str, sql: str) -> ResultSet:
        failed = self._load_failed()
        if query_id in failed:
            raise CatalogQueryError(query_id, failed[query_id])

        path = _result_path(self.folder, query_id)
        if not os.path.exists(path):
            logger.debug("No offline result for %s in %s", query_id, self.folder)
            return ResultSet(query_id=query_id)

        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise CatalogQueryError(query_id, f"cannot read {path}: {exc}") from exc
        try:
            jsonschema.validate(instance=data, schema=RESULT_SET_SCHEMA)
        except ValidationError as exc:
            raise CatalogQueryError(query_id, f"invalid result set {path}: {exc.message}") from exc

        columns = [ColumnMeta(name=c["name"], type_name=c.get("type_name")) for c in data["columns"]]
        rows = [tuple(r) for r in data["rows"]]
        for number, row in enumerate(rows, start=1):
            if len(row) != len(columns):
                raise CatalogQueryError(
                    query_id,
                    f"invalid result set {path}: row {number} has {len(row)} values, "
                    f"expected {len(columns)}",
                )
        return ResultSet(query_id=query_id, columns=columns, rows=rows)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def export_to_folder(
    introspector: BaseIntrospector,
    catalog: Catalog,
    output_folder: str,
) -> dict[str, Any]:
    """Run every query of *catalog* and write the results as an offline folder.

    A failing query is recorded in the manifest and does not stop the export.

    Returns:
        Summary dict: {catalog, queries, rows, failed, output_folder}.
    """
    os.makedirs(output_folder, exist_ok=True)

    counts: dict[str, int] = {}
    failed: dict[str, str] = {}
    for query_id, sql in catalog.all_queries():
        try:
            result = introspector.fetch(query_id, sql)
            rows = [list(r) for r in result]
        except CatalogQueryError as exc:
            logger.error("Export of %s failed: %s", query_id, exc.detail)
            failed[query_id] = exc.detail
            continue

        data = {
            "query_id": query_id,
            "columns": [{"name": c.name, "type_name": c.type_name} for c in result.columns],
            "rows": rows,
        }
        path = _result_path(output_folder, query_id)
        with open(path, "w") as f:
            json.dump(data, f, indent=2, default=str)
        counts[query_id] = len(rows)
        logger.info("Wrote %s (%d rows)", path, len(rows))

    manifest = {
        "catalog": catalog.name,
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "queries": counts,
        "failed": failed,
    }
    with open(os.path.join(output_folder, MANIFEST_FILE), "w") as f:
        json.dump(manifest, f, indent=2)

    return {
        "catalog": catalog.name,
        "queries": len(counts),
        "rows": sum(counts.values()),
        "failed": sorted(failed),
        "output_folder": output_folder,
    }
