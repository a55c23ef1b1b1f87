"""Build the object graph once and print a summary.

Usage:
  python3 scripts/build_graph.py                      # live catalog from settings
  python3 scripts/build_graph.py --offline ./offline_export
  python3 scripts/build_graph.py --kind table --show table.employees
"""

import argparse
import logging
import sys

# Ensure schemadoc is importable when run from project root
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from schemadoc.core.config import settings  # noqa: E402


def _print_object(graph, key: str) -> None:
    obj = graph.get(key)
    if obj is None:
        print(f"  {key}: not found")
        return
    print(f"\n=== {obj.kind.value} {obj.name} ===")
    print(f"  key:    {obj.key}")
    print(f"  link:   {obj.link}")
    print(f"  parent: {obj.parent_key or '-'}")
    for row in obj.attributes:
        cells = [f"{a.name}={a.value!r}" for a in row if a.visible]
        print("  | " + ", ".join(cells))


def main() -> None:
    parser = argparse.ArgumentParser(description="Build the schema object graph.")
    parser.add_argument(
        "--offline",
        default=None,
        help="Replay an offline folder instead of querying PostgreSQL",
    )
    parser.add_argument("--kind", default=None, help="List the objects of one kind")
    parser.add_argument("--show", nargs="*", default=[], help="Object keys to print in full")
    args = parser.parse_args()
    logging.basicConfig(level=settings.LOG_LEVEL)

    from schemadoc.core.errors import GraphBuildError
    from schemadoc.graph.context import GraphContext
    from schemadoc.models.schema import ObjectKind

    if args.offline:
        settings.OFFLINE_FOLDER = args.offline
    context = GraphContext.from_settings(settings)

    try:
        graph = context.graph
    except GraphBuildError as exc:
        print(f"Build failed: {exc}", file=sys.stderr)
        sys.exit(1)

    report = graph.report
    print("\n=== Build Summary ===")
    print(f"  Objects:      {len(graph)}")
    for kind in ObjectKind:
        count = len(graph.by_kind(kind))
        if count:
            print(f"    {kind.value:<12}{count}")
    print(f"  Rows:         {report.rows_ingested}/{report.rows_read} ingested")
    print(f"  Dangling:     {report.dangling_rows}")
    print(f"  Attachments:  {report.attachments}")
    print(f"  Duplicates:   {report.duplicate_keys}")
    print(f"  Duration:     {report.duration_s:.2f}s")
    for query_id, detail in sorted(report.failed_queries.items()):
        print(f"  FAILED {query_id}: {detail}")

    if args.kind:
        print(f"\n=== {args.kind} objects ===")
        for obj in graph.by_kind(ObjectKind.from_catalog(args.kind)):
            print(f"  {obj.key:<50} {obj.link}")

    for key in args.show:
        _print_object(graph, key)


if __name__ == "__main__":
    main()
