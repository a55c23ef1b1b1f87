"""PostgreSQL catalog queries, expressed as shell queries and ingestion specs.

Every query is parameterised by ``%(schema)s``. Result columns follow the
query contract in schemadoc.graph.ingestion: the object name first,
``parent_name`` for child rows, ``_`` for hidden columns and a ``Code`` suffix
for source text.

Source text is delivered one row per line (``regexp_split_to_table`` with its
ordinality) so the builder can reassemble it in concatenation mode.

PostgreSQL has no packages; the PACKAGE kind exists in the model but this
catalog has no queries for it. Trigger and constraint names are only unique
per table in PostgreSQL, so same-named ones in different tables share a key.
"""

from __future__ import annotations

from schemadoc.graph.ingestion import Catalog, IngestionSpec, ShellQuery
from schemadoc.models.schema import ObjectKind

K = ObjectKind

# Kinds are attributed in this order; columns last, so a table lists its own
# attributes before its column entries.
KIND_ORDER: list[ObjectKind] = [
    K.TABLE,
    K.VIEW,
    K.CONSTRAINT,
    K.INDEX,
    K.TRIGGER,
    K.PROCEDURE,
    K.FUNCTION,
    K.PACKAGE,
    K.SEQUENCE,
    K.COLUMN,
]

# Numbered source line, e.g. "12  :  RETURN NEW;"
_LINE = "src.line_no || lpad(':', 5 - length(src.line_no::text)) || src.line_text"


# ---------------------------------------------------------------------------
# Phase 1: shells
# ---------------------------------------------------------------------------

OBJECTS_SQL = """
SELECT 'TABLE' AS object_type, c.relname AS object_name
  FROM pg_class c
  JOIN pg_namespace n ON n.oid = c.relnamespace
 WHERE n.nspname = %(schema)s AND c.relkind IN ('r', 'p')
UNION
SELECT 'VIEW', c.relname
  FROM pg_class c
  JOIN pg_namespace n ON n.oid = c.relnamespace
 WHERE n.nspname = %(schema)s AND c.relkind IN ('v', 'm')
UNION
SELECT 'INDEX', c.relname
  FROM pg_class c
  JOIN pg_namespace n ON n.oid = c.relnamespace
 WHERE n.nspname = %(schema)s AND c.relkind IN ('i', 'I')
UNION
SELECT 'SEQUENCE', c.relname
  FROM pg_class c
  JOIN pg_namespace n ON n.oid = c.relnamespace
 WHERE n.nspname = %(schema)s AND c.relkind = 'S'
UNION
SELECT 'TRIGGER', t.tgname
  FROM pg_trigger t
  JOIN pg_class c ON c.oid = t.tgrelid
  JOIN pg_namespace n ON n.oid = c.relnamespace
 WHERE n.nspname = %(schema)s AND NOT t.tgisinternal
UNION
SELECT CASE p.prokind WHEN 'p' THEN 'PROCEDURE' ELSE 'FUNCTION' END, p.proname
  FROM pg_proc p
  JOIN pg_namespace n ON n.oid = p.pronamespace
 WHERE n.nspname = %(schema)s AND p.prokind IN ('f', 'p')
UNION
SELECT 'CONSTRAINT', con.conname
  FROM pg_constraint con
  JOIN pg_namespace n ON n.oid = con.connamespace
 WHERE n.nspname = %(schema)s AND con.contype IN ('p', 'u', 'f', 'c', 'x')
 ORDER BY object_type, object_name
"""

COLUMNS_SQL = """
SELECT a.attname AS object_name,
       c.relname AS parent_name,
       CASE WHEN c.relkind IN ('v', 'm') THEN 'VIEW' ELSE 'TABLE' END AS parent_type
  FROM pg_attribute a
  JOIN pg_class c ON c.oid = a.attrelid
  JOIN pg_namespace n ON n.oid = c.relnamespace
 WHERE n.nspname = %(schema)s
   AND c.relkind IN ('r', 'p', 'v', 'm')
   AND a.attnum > 0
   AND NOT a.attisdropped
 ORDER BY parent_type, parent_name, a.attnum
"""


# ---------------------------------------------------------------------------
# Phase 2: tables and views
# ---------------------------------------------------------------------------

TABLE_COMMENTS_SQL = """
SELECT c.relname                         AS "Table",
       obj_description(c.oid, 'pg_class') AS "Description"
  FROM pg_class c
  JOIN pg_namespace n ON n.oid = c.relnamespace
 WHERE n.nspname = %(schema)s AND c.relkind IN ('r', 'p')
 ORDER BY c.relname
"""

TABLE_OPTIONS_SQL = """
SELECT c.relname                                           AS "Table",
       'Setting'                                           AS "Option",
       CASE c.relkind WHEN 'p' THEN 'Y' ELSE 'N' END       AS "Partitioned",
       CASE WHEN c.relispartition THEN 'Y' ELSE 'N' END    AS "Partition",
       CASE c.relpersistence WHEN 'u' THEN 'N' ELSE 'Y' END AS "Logging",
       CASE c.relpersistence WHEN 't' THEN 'Y' ELSE 'N' END AS "Temporary",
       COALESCE(ts.spcname, 'pg_default')                  AS "Tablespace",
       c.reltuples::bigint                                 AS "Estimated rows"
  FROM pg_class c
  JOIN pg_namespace n ON n.oid = c.relnamespace
  LEFT JOIN pg_tablespace ts ON ts.oid = c.reltablespace
 WHERE n.nspname = %(schema)s AND c.relkind IN ('r', 'p')
 ORDER BY c.relname
"""

TABLE_REFERENCED_BY_SQL = """
SELECT rt.relname   AS "Table",
       ft.relname   AS "Referenced by",
       con.conname  AS "Constraint"
  FROM pg_constraint con
  JOIN pg_class ft ON ft.oid = con.conrelid
  JOIN pg_class rt ON rt.oid = con.confrelid
  JOIN pg_namespace n ON n.oid = rt.relnamespace
 WHERE n.nspname = %(schema)s AND con.contype = 'f'
 ORDER BY rt.relname, ft.relname, con.conname
"""

VIEW_COMMENTS_SQL = """
SELECT c.relname                         AS "View",
       obj_description(c.oid, 'pg_class') AS "Description"
  FROM pg_class c
  JOIN pg_namespace n ON n.oid = c.relnamespace
 WHERE n.nspname = %(schema)s AND c.relkind IN ('v', 'm')
 ORDER BY c.relname
"""

VIEW_CODE_SQL = """
SELECT c.relname                    AS "View",
       pg_get_viewdef(c.oid, true)  AS "Code"
  FROM pg_class c
  JOIN pg_namespace n ON n.oid = c.relnamespace
 WHERE n.nspname = %(schema)s AND c.relkind IN ('v', 'm')
 ORDER BY c.relname
"""


# ---------------------------------------------------------------------------
# Phase 2: constraints and indexes
# ---------------------------------------------------------------------------

PRIMARY_KEYS_SQL = """
SELECT con.conname AS "Primary key",
       t.relname   AS "parent_name"
  FROM pg_constraint con
  JOIN pg_class t ON t.oid = con.conrelid
  JOIN pg_namespace n ON n.oid = con.connamespace
 WHERE n.nspname = %(schema)s AND con.contype = 'p'
 ORDER BY con.conname
"""

CHECK_CONSTRAINTS_SQL = """
SELECT con.conname                    AS "Check constraint",
       t.relname                      AS "parent_name",
       pg_get_constraintdef(con.oid)  AS "Check condition"
  FROM pg_constraint con
  JOIN pg_class t ON t.oid = con.conrelid
  JOIN pg_namespace n ON n.oid = con.connamespace
 WHERE n.nspname = %(schema)s AND con.contype = 'c'
 ORDER BY con.conname
"""

FOREIGN_KEYS_SQL = """
SELECT con.conname  AS "Foreign key",
       t.relname    AS "parent_name",
       rt.relname   AS "Referenced table",
       (SELECT rc.conname
          FROM pg_constraint rc
         WHERE rc.conrelid = con.confrelid
           AND rc.conindid = con.conindid
           AND rc.contype IN ('p', 'u')
         LIMIT 1)   AS "Referenced constraint",
       CASE con.confdeltype
            WHEN 'a' THEN 'NO ACTION'
            WHEN 'r' THEN 'RESTRICT'
            WHEN 'c' THEN 'CASCADE'
            WHEN 'n' THEN 'SET NULL'
            WHEN 'd' THEN 'SET DEFAULT'
       END          AS "Delete rule"
  FROM pg_constraint con
  JOIN pg_class t ON t.oid = con.conrelid
  JOIN pg_class rt ON rt.oid = con.confrelid
  JOIN pg_namespace n ON n.oid = con.connamespace
 WHERE n.nspname = %(schema)s AND con.contype = 'f'
 ORDER BY con.conname
"""

UNIQUE_KEYS_SQL = """
SELECT con.conname AS "Unique key",
       t.relname   AS "parent_name"
  FROM pg_constraint con
  JOIN pg_class t ON t.oid = con.conrelid
  JOIN pg_namespace n ON n.oid = con.connamespace
 WHERE n.nspname = %(schema)s AND con.contype = 'u'
 ORDER BY con.conname
"""

INDEXES_SQL = """
SELECT i.relname  AS "Index",
       t.relname  AS "parent_name",
       am.amname  AS "Type",
       CASE WHEN ix.indisunique THEN 'UNIQUE' ELSE 'NONUNIQUE' END AS "Uniqueness"
  FROM pg_index ix
  JOIN pg_class i ON i.oid = ix.indexrelid
  JOIN pg_class t ON t.oid = ix.indrelid
  JOIN pg_am am ON am.oid = i.relam
  JOIN pg_namespace n ON n.oid = i.relnamespace
 WHERE n.nspname = %(schema)s
 ORDER BY i.relname
"""


# ---------------------------------------------------------------------------
# Phase 2: code objects
# ---------------------------------------------------------------------------

TRIGGER_PROPERTIES_SQL = """
SELECT trigger_name                                                AS "Trigger",
       event_object_table                                          AS "parent_name",
       action_timing                                               AS "Timing",
       string_agg(event_manipulation, ' OR ' ORDER BY event_manipulation) AS "Event",
       action_orientation                                          AS "Level"
  FROM information_schema.triggers
 WHERE trigger_schema = %(schema)s
 GROUP BY trigger_name, event_object_table, action_timing, action_orientation
 ORDER BY event_object_table, trigger_name
"""

TRIGGER_CODE_SQL = f"""
SELECT src.trigger_name AS "Trigger",
       src.table_name   AS "parent_name",
       {_LINE}          AS "Code"
  FROM (SELECT t.tgname  AS trigger_name,
               c.relname AS table_name,
               l.line_no,
               l.line_text
          FROM pg_trigger t
          JOIN pg_class c ON c.oid = t.tgrelid
          JOIN pg_namespace n ON n.oid = c.relnamespace
          JOIN pg_proc p ON p.oid = t.tgfoid
         CROSS JOIN LATERAL regexp_split_to_table(
               pg_get_triggerdef(t.oid, true) || E'\\n' || p.prosrc, E'\\n'
         ) WITH ORDINALITY AS l(line_text, line_no)
         WHERE n.nspname = %(schema)s AND NOT t.tgisinternal) src
 ORDER BY src.table_name, src.trigger_name, src.line_no
"""


def _arguments_sql(routine_type: str, label: str) -> str:
    return f"""
SELECT r.routine_name       AS "{label}",
       p.parameter_name     AS "Argument name",
       p.data_type          AS "Datatype",
       p.parameter_default  AS "Default value",
       p.parameter_mode     AS "In/Out"
  FROM information_schema.routines r
  JOIN information_schema.parameters p
    ON p.specific_schema = r.specific_schema
   AND p.specific_name = r.specific_name
 WHERE r.routine_schema = %(schema)s AND r.routine_type = '{routine_type}'
 ORDER BY r.routine_name, r.specific_name, p.ordinal_position
"""


def _source_sql(prokind: str, label: str) -> str:
    return f"""
SELECT src.proname AS "{label}",
       {_LINE}     AS "Code"
  FROM (SELECT p.proname, p.oid, l.line_no, l.line_text
          FROM pg_proc p
          JOIN pg_namespace n ON n.oid = p.pronamespace
         CROSS JOIN LATERAL regexp_split_to_table(p.prosrc, E'\\n')
               WITH ORDINALITY AS l(line_text, line_no)
         WHERE n.nspname = %(schema)s AND p.prokind = '{prokind}') src
 ORDER BY src.proname, src.oid, src.line_no
"""


FUNCTION_RETURNS_SQL = """
SELECT p.proname                     AS "Function",
       pg_get_function_result(p.oid) AS "Returns"
  FROM pg_proc p
  JOIN pg_namespace n ON n.oid = p.pronamespace
 WHERE n.nspname = %(schema)s AND p.prokind = 'f'
 ORDER BY p.proname
"""

SEQUENCES_SQL = """
SELECT sequencename  AS "Sequence",
       data_type::text AS "Datatype",
       start_value   AS "Start",
       increment_by  AS "Increment",
       min_value     AS "Minimum",
       max_value     AS "Maximum",
       CASE WHEN cycle THEN 'Y' ELSE 'N' END AS "Cycle",
       last_value    AS "_last_value"
  FROM pg_sequences
 WHERE schemaname = %(schema)s
 ORDER BY sequencename
"""


# ---------------------------------------------------------------------------
# Phase 2: columns
# ---------------------------------------------------------------------------

TABLE_COLUMNS_SQL = """
SELECT a.attname                            AS "Column",
       c.relname                            AS "parent_name",
       format_type(a.atttypid, a.atttypmod) AS "Datatype",
       CASE WHEN a.attnotnull THEN 'N' ELSE 'Y' END AS "Nullable",
       pg_get_expr(d.adbin, d.adrelid)      AS "Default value",
       col_description(c.oid, a.attnum)     AS "Comment"
  FROM pg_attribute a
  JOIN pg_class c ON c.oid = a.attrelid
  JOIN pg_namespace n ON n.oid = c.relnamespace
  LEFT JOIN pg_attrdef d ON d.adrelid = a.attrelid AND d.adnum = a.attnum
 WHERE n.nspname = %(schema)s
   AND c.relkind IN ('r', 'p')
   AND a.attnum > 0
   AND NOT a.attisdropped
 ORDER BY c.relname, a.attnum
"""

VIEW_COLUMNS_SQL = """
SELECT a.attname                            AS "Column",
       c.relname                            AS "parent_name",
       format_type(a.atttypid, a.atttypmod) AS "Datatype",
       CASE WHEN a.attnotnull THEN 'N' ELSE 'Y' END AS "Nullable",
       COALESCE(ic.is_updatable, 'NO')      AS "Updateable",
       col_description(c.oid, a.attnum)     AS "Comment"
  FROM pg_attribute a
  JOIN pg_class c ON c.oid = a.attrelid
  JOIN pg_namespace n ON n.oid = c.relnamespace
  LEFT JOIN information_schema.columns ic
    ON ic.table_schema = n.nspname
   AND ic.table_name = c.relname
   AND ic.column_name = a.attname
 WHERE n.nspname = %(schema)s
   AND c.relkind IN ('v', 'm')
   AND a.attnum > 0
   AND NOT a.attisdropped
 ORDER BY c.relname, a.attnum
"""

COLUMN_INDEXES_SQL = """
SELECT a.attname  AS "Column",
       t.relname  AS "parent_name",
       'INDEX'    AS "_owner_type",
       i.relname  AS "_owner_name",
       k.position AS "_position"
  FROM pg_index ix
  JOIN pg_class i ON i.oid = ix.indexrelid
  JOIN pg_class t ON t.oid = ix.indrelid
  JOIN pg_namespace n ON n.oid = t.relnamespace
 CROSS JOIN LATERAL unnest(ix.indkey::int2[]) WITH ORDINALITY AS k(attnum, position)
  JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
 WHERE n.nspname = %(schema)s
 ORDER BY t.relname, i.relname, k.position
"""

COLUMN_CONSTRAINTS_SQL = """
SELECT a.attname    AS "Column",
       t.relname    AS "parent_name",
       'CONSTRAINT' AS "_owner_type",
       con.conname  AS "_owner_name",
       k.position   AS "_position"
  FROM pg_constraint con
  JOIN pg_class t ON t.oid = con.conrelid
  JOIN pg_namespace n ON n.oid = con.connamespace
 CROSS JOIN LATERAL unnest(con.conkey) WITH ORDINALITY AS k(attnum, position)
  JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
 WHERE n.nspname = %(schema)s AND con.contype IN ('p', 'u', 'f', 'c')
 ORDER BY t.relname, con.conname, k.position
"""


def build_catalog() -> Catalog:
    """The PostgreSQL catalog: shell queries and per-kind ingestion specs."""
    specs: dict[ObjectKind, list[IngestionSpec]] = {
        K.TABLE: [
            IngestionSpec("table_comments", TABLE_COMMENTS_SQL, K.TABLE, (K.TABLE, None)),
            IngestionSpec(
                "table_options",
                TABLE_OPTIONS_SQL,
                K.TABLE,
                (K.TABLE, None, None, None, None, None, None, None),
            ),
            IngestionSpec(
                "table_referenced_by",
                TABLE_REFERENCED_BY_SQL,
                K.TABLE,
                (K.TABLE, K.TABLE, K.CONSTRAINT),
            ),
        ],
        K.VIEW: [
            IngestionSpec("view_comments", VIEW_COMMENTS_SQL, K.VIEW, (K.VIEW, None)),
            IngestionSpec("view_code", VIEW_CODE_SQL, K.VIEW, (K.VIEW, None)),
        ],
        K.CONSTRAINT: [
            IngestionSpec(
                "primary_keys",
                PRIMARY_KEYS_SQL,
                K.CONSTRAINT,
                (K.CONSTRAINT, K.TABLE),
                parent_kind=K.TABLE,
            ),
            IngestionSpec(
                "check_constraints",
                CHECK_CONSTRAINTS_SQL,
                K.CONSTRAINT,
                (K.CONSTRAINT, K.TABLE, None),
                parent_kind=K.TABLE,
            ),
            IngestionSpec(
                "foreign_keys",
                FOREIGN_KEYS_SQL,
                K.CONSTRAINT,
                (K.CONSTRAINT, K.TABLE, K.TABLE, K.CONSTRAINT, None),
                parent_kind=K.TABLE,
            ),
            IngestionSpec(
                "unique_keys",
                UNIQUE_KEYS_SQL,
                K.CONSTRAINT,
                (K.CONSTRAINT, K.TABLE),
                parent_kind=K.TABLE,
            ),
        ],
        K.INDEX: [
            IngestionSpec(
                "indexes",
                INDEXES_SQL,
                K.INDEX,
                (K.INDEX, K.TABLE, None, None),
                parent_kind=K.TABLE,
            ),
        ],
        K.TRIGGER: [
            IngestionSpec(
                "trigger_properties",
                TRIGGER_PROPERTIES_SQL,
                K.TRIGGER,
                (K.TRIGGER, K.TABLE, None, None, None),
                parent_kind=K.TABLE,
            ),
            IngestionSpec(
                "trigger_code",
                TRIGGER_CODE_SQL,
                K.TRIGGER,
                (K.TRIGGER, K.TABLE, None),
                parent_kind=K.TABLE,
                concatenate=True,
                wrap=True,
            ),
        ],
        K.PROCEDURE: [
            IngestionSpec(
                "procedure_arguments",
                _arguments_sql("PROCEDURE", "Procedure"),
                K.PROCEDURE,
                (K.PROCEDURE, None, None, None, None),
            ),
            IngestionSpec(
                "procedure_code",
                _source_sql("p", "Procedure"),
                K.PROCEDURE,
                (K.PROCEDURE, None),
                concatenate=True,
                wrap=True,
            ),
        ],
        K.FUNCTION: [
            IngestionSpec(
                "function_arguments",
                _arguments_sql("FUNCTION", "Function"),
                K.FUNCTION,
                (K.FUNCTION, None, None, None, None),
            ),
            IngestionSpec(
                "function_returns",
                FUNCTION_RETURNS_SQL,
                K.FUNCTION,
                (K.FUNCTION, None),
            ),
            IngestionSpec(
                "function_code",
                _source_sql("f", "Function"),
                K.FUNCTION,
                (K.FUNCTION, None),
                concatenate=True,
                wrap=True,
            ),
        ],
        K.SEQUENCE: [
            IngestionSpec(
                "sequences",
                SEQUENCES_SQL,
                K.SEQUENCE,
                (K.SEQUENCE, None, None, None, None, None, None, None),
            ),
        ],
        K.COLUMN: [
            IngestionSpec(
                "table_columns",
                TABLE_COLUMNS_SQL,
                K.COLUMN,
                (K.COLUMN, K.TABLE, None, None, None, None),
                parent_kind=K.TABLE,
            ),
            IngestionSpec(
                "view_columns",
                VIEW_COLUMNS_SQL,
                K.COLUMN,
                (K.COLUMN, K.VIEW, None, None, None, None),
                parent_kind=K.VIEW,
            ),
            IngestionSpec(
                "column_indexes",
                COLUMN_INDEXES_SQL,
                K.COLUMN,
                (K.COLUMN, K.TABLE, None, K.INDEX, None),
                parent_kind=K.TABLE,
            ),
            IngestionSpec(
                "column_constraints",
                COLUMN_CONSTRAINTS_SQL,
                K.COLUMN,
                (K.COLUMN, K.TABLE, None, K.CONSTRAINT, None),
                parent_kind=K.TABLE,
            ),
        ],
    }
    return Catalog(
        name="postgresql",
        shell_queries=[
            ShellQuery("objects", OBJECTS_SQL),
            ShellQuery("columns", COLUMNS_SQL, child_kind=K.COLUMN),
        ],
        kind_order=list(KIND_ORDER),
        specs=specs,
    )
