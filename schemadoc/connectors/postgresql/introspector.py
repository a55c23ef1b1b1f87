"""PostgreSQL catalog introspector.

One psycopg2 connection serves the whole build. It is opened on the first
query, read-only and in autocommit mode, so a failing query does not poison
the queries after it.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Optional

import psycopg2
import psycopg2.extensions
from pydantic import BaseModel, Field

from schemadoc.connectors.base import (
    AuthMode,
    BaseIntrospector,
    ColumnMeta,
    ResultSet,
    drain_value,
)
from schemadoc.core.config import Settings
from schemadoc.core.errors import CatalogQueryError, ConnectivityError

logger = logging.getLogger(__name__)

_FETCH_BATCH = 500


class ConnectionParams(BaseModel):
    """DSN parameters handed to psycopg2."""

    host: str = "localhost"
    port: int = Field(default=5432, ge=1, le=65535)
    dbname: str = "postgres"
    user: str = "postgres"
    password: str = ""
    connect_timeout: int = Field(default=10, ge=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectionParams":
        return cls(
            host=settings.PG_HOST,
            port=settings.PG_PORT,
            dbname=settings.PG_DBNAME,
            user=settings.PG_USER,
            password=settings.PG_PASSWORD,
            connect_timeout=settings.PG_CONNECT_TIMEOUT_S,
        )

    def to_connect_kwargs(self) -> dict[str, Any]:
        return self.model_dump()


class PostgreSQLIntrospector(BaseIntrospector):
    """Run catalog queries against one PostgreSQL schema.

    Queries may reference the schema name as ``%(schema)s``.
    """

    auth_mode = AuthMode.USERNAME_PASSWORD

    def __init__(self, params: ConnectionParams, schema: str = "public"):
        self.params = params
        self.schema = schema
        self._conn: Optional[psycopg2.extensions.connection] = None
        self._type_names: Optional[dict[int, str]] = None

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    def _connect(self) -> psycopg2.extensions.connection:
        if self._conn is None or self._conn.closed:
            try:
                self._conn = psycopg2.connect(**self.params.to_connect_kwargs())
                self._conn.set_session(readonly=True, autocommit=True)
            except psycopg2.Error as exc:
                self._conn = None
                raise ConnectivityError(
                    f"cannot connect to {self.params.host}:{self.params.port}/"
                    f"{self.params.dbname}: {exc}"
                ) from exc
            logger.info(
                "Connected to PostgreSQL %s:%s/%s, schema %s",
                self.params.host,
                self.params.port,
                self.params.dbname,
                self.schema,
            )
        return self._conn

    def close(self) -> None:
        if self._conn is not None and not self._conn.closed:
            self._conn.close()
        self._conn = None

    def _query_error(self, query_id: str, exc: psycopg2.Error) -> Exception:
        if self._conn is None or self._conn.closed:
            return ConnectivityError(f"connection lost during query {query_id}: {exc}")
        return CatalogQueryError(query_id, str(exc).strip())

    # ------------------------------------------------------------------
    # BaseIntrospector interface
    # ------------------------------------------------------------------

    def test_connection(self) -> bool:
        try:
            conn = self._connect()
            with conn.cursor() as cur:
                cur.execute("SELECT version()")
                cur.fetchone()
            return True
        except (ConnectivityError, psycopg2.Error) as exc:
            logger.error("PostgreSQL connection test failed: %s", exc)
            return False

    def fetch(self, query_id: str, sql: str) -> ResultSet:
        conn = self._connect()
        try:
            type_names = self._load_type_names(conn)
        except psycopg2.Error as exc:
            raise self._query_error(query_id, exc) from exc
        cur = conn.cursor()
        try:
            cur.execute(sql, {"schema": self.schema})
        except psycopg2.Error as exc:
            cur.close()
            raise self._query_error(query_id, exc) from exc

        columns = [
            ColumnMeta(name=d.name, type_name=type_names.get(d.type_code))
            for d in cur.description or []
        ]
        return ResultSet(
            query_id=query_id,
            columns=columns,
            rows=self._iter_rows(query_id, cur),
            on_close=cur.close,
        )

    def _iter_rows(self, query_id: str, cur) -> Iterator[tuple[Any, ...]]:
        try:
            while True:
                try:
                    batch = cur.fetchmany(_FETCH_BATCH)
                except psycopg2.Error as exc:
                    raise self._query_error(query_id, exc) from exc
                if not batch:
                    return
                for row in batch:
                    yield tuple(drain_value(v) for v in row)
        finally:
            cur.close()

    def _load_type_names(self, conn) -> dict[int, str]:
        if self._type_names is None:
            with conn.cursor() as cur:
                cur.execute("SELECT oid, typname FROM pg_catalog.pg_type")
                self._type_names = {oid: name for oid, name in cur.fetchall()}
        return self._type_names
