"""Export the PostgreSQL catalog result sets to an offline folder.

The folder can be replayed later by setting OFFLINE_FOLDER, or with
scripts/build_graph.py --offline, without access to the database.

Usage:
  python3 scripts/export_catalog_offline.py \
      --host localhost --port 5432 --dbname sample \
      --user postgres --password postgres --schema public \
      --output ./offline_export
"""

import argparse
import logging
import sys

# Ensure schemadoc is importable when run from project root
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from schemadoc.core.config import settings  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Export PostgreSQL catalog result sets to an offline JSON folder."
    )
    parser.add_argument("--host",     default=settings.PG_HOST)
    parser.add_argument("--port",     type=int, default=settings.PG_PORT)
    parser.add_argument("--dbname",   default=settings.PG_DBNAME)
    parser.add_argument("--user",     default=settings.PG_USER)
    parser.add_argument("--password", default=settings.PG_PASSWORD)
    parser.add_argument("--schema",   default=settings.PG_SCHEMA)
    parser.add_argument(
        "--output",
        default="./offline_export",
        help="Output directory (created if it does not exist)",
    )
    args = parser.parse_args()
    logging.basicConfig(level=settings.LOG_LEVEL)

    from schemadoc.connectors.offline import export_to_folder
    from schemadoc.connectors.postgresql.catalog import build_catalog
    from schemadoc.connectors.postgresql.introspector import (
        ConnectionParams,
        PostgreSQLIntrospector,
    )
    from schemadoc.core.errors import ConnectivityError

    params = ConnectionParams(
        host=args.host,
        port=args.port,
        dbname=args.dbname,
        user=args.user,
        password=args.password,
    )
    print(f"Connecting to PostgreSQL at {args.host}:{args.port}/{args.dbname}...")
    print(f"Schema: {args.schema}")
    print(f"Output folder: {args.output}")

    try:
        with PostgreSQLIntrospector(params, schema=args.schema) as introspector:
            summary = export_to_folder(introspector, build_catalog(), args.output)
    except ConnectivityError as exc:
        print(f"Export failed: {exc}", file=sys.stderr)
        sys.exit(1)

    print("\n=== Export Summary ===")
    print(f"  Catalog:  {summary['catalog']}")
    print(f"  Queries:  {summary['queries']}")
    print(f"  Rows:     {summary['rows']}")
    if summary["failed"]:
        print(f"  Failed:   {', '.join(summary['failed'])}")
    print(f"  Files written to: {summary['output_folder']}")
    print("\nDone. Set OFFLINE_FOLDER to replay the export.")


if __name__ == "__main__":
    main()
