"""PostgreSQL-backed stores for records, settings and sessions."""

from __future__ import annotations

import copy
import json
from typing import Any, List, Mapping

from app.db import execute, fetch_all, fetch_one, get_conn
from app.stores import matches, sort_key
from entity_catalog import EntityCatalog, Record


SCHEMA_SQL = (
    """
    create table if not exists admin_records (
        entity_type text not null,
        id bigint not null,
        data jsonb not null,
        updated_at timestamptz not null default now(),
        primary key (entity_type, id)
    )
    """,
    """
    create table if not exists admin_settings (
        module_type text primary key,
        data text not null,
        updated_at timestamptz not null default now()
    )
    """,
    """
    create table if not exists admin_sessions (
        session_id text not null,
        key text not null,
        value jsonb,
        updated_at timestamptz not null default now(),
        primary key (session_id, key)
    )
    """,
    "create index if not exists admin_sessions_updated_at on admin_sessions (updated_at)",
)


def _json_dumps(value: object) -> str:
    return json.dumps(value, default=str)


def _json_loads(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


def ensure_schema() -> None:
    with get_conn() as conn:
        for index, sql in enumerate(SCHEMA_SQL):
            execute(conn, sql, query_name=f"admin_schema.ensure.{index}")


class DbRecordStore:
    def __init__(self, catalog: EntityCatalog) -> None:
        self._catalog = catalog

    def _schema(self, entity_type: str):
        schema = self._catalog.get(entity_type)
        if schema is None:
            raise KeyError(f"unknown entity type: {entity_type}")
        return schema

    def blank(self, entity_type: str) -> Record:
        return Record(self._schema(entity_type))

    def load(self, entity_type: str, record_id: Any) -> Record | None:
        schema = self._schema(entity_type)
        try:
            key = int(record_id)
        except (TypeError, ValueError):
            return None
        with get_conn() as conn:
            row = fetch_one(
                conn,
                "select id, data from admin_records where entity_type=%s and id=%s",
                [schema.type, key],
                query_name="admin_records.load",
            )
        if not row:
            return None
        return self._record(schema, row)

    def _record(self, schema, row: Mapping[str, Any]) -> Record:
        data = dict(_json_loads(row.get("data")) or {})
        data[schema.id_column] = int(row["id"])
        return Record(schema, data)

    def search(self, entity_type: str, criteria: Mapping[str, Any] | None = None, sort_column: str | None = None) -> List[Record]:
        schema = self._schema(entity_type)
        criteria = dict(criteria or {})
        sql = "select id, data from admin_records where entity_type=%s"
        params: list = [schema.type]
        ids = criteria.get(schema.id_column)
        if isinstance(ids, (list, set)):
            sql += " and id = any(%s)"
            params.append([int(v) for v in ids if str(v).lstrip("-").isdigit()])
            criteria.pop(schema.id_column)
        with get_conn() as conn:
            rows = fetch_all(conn, sql, params, query_name="admin_records.search")
        records = [self._record(schema, row) for row in rows]
        data = [(record.get_all(), record) for record in records if matches(record.get_all(), criteria)]
        key = sort_key(sort_column or schema.id_column)
        data.sort(key=lambda pair: key(pair[0]))
        return [record for _, record in data]

    def save(self, record: Record) -> bool:
        schema = record.schema
        data = record.get_all()
        data.pop(schema.id_column, None)
        with get_conn() as conn:
            if record.id <= 0:
                row = fetch_one(
                    conn,
                    """
                    insert into admin_records (entity_type, id, data)
                    values (%s, (select coalesce(max(id), 0) + 1 from admin_records where entity_type=%s), %s::jsonb)
                    returning id
                    """,
                    [schema.type, schema.type, _json_dumps(data)],
                    query_name="admin_records.insert",
                )
                if not row:
                    return False
                record.id = int(row["id"])
                return True
            count = execute(
                conn,
                """
                insert into admin_records (entity_type, id, data)
                values (%s, %s, %s::jsonb)
                on conflict (entity_type, id) do update set data=excluded.data, updated_at=now()
                """,
                [schema.type, record.id, _json_dumps(data)],
                query_name="admin_records.upsert",
            )
        return count > 0

    def delete(self, record: Record) -> bool:
        with get_conn() as conn:
            count = execute(
                conn,
                "delete from admin_records where entity_type=%s and id=%s",
                [record.type, record.id],
                query_name="admin_records.delete",
            )
        return count > 0


class DbSettingsStore:
    def read_settings(self, module_type: str) -> str | None:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                "select data from admin_settings where module_type=%s limit 1",
                [module_type],
                query_name="admin_settings.read",
            )
        return row.get("data") if row else None

    def write_settings(self, module_type: str, blob: str) -> None:
        with get_conn() as conn:
            count = execute(
                conn,
                "update admin_settings set data=%s, updated_at=now() where module_type=%s",
                [blob, module_type],
                query_name="admin_settings.write",
            )
        if count == 0:
            raise KeyError(f"no settings row for module type {module_type}")

    def insert_settings(self, module_type: str, blob: str) -> None:
        with get_conn() as conn:
            execute(
                conn,
                "insert into admin_settings (module_type, data) values (%s, %s) on conflict (module_type) do nothing",
                [module_type, blob],
                query_name="admin_settings.insert",
            )


class DbSessionHandle:
    def __init__(self, session_id: str) -> None:
        self._session_id = session_id

    def get(self, key: str) -> Any:
        with get_conn() as conn:
            row = fetch_one(
                conn,
                "select value from admin_sessions where session_id=%s and key=%s",
                [self._session_id, key],
                query_name="admin_sessions.get",
            )
        return copy.deepcopy(_json_loads(row.get("value"))) if row else None

    def set(self, key: str, value: Any) -> None:
        with get_conn() as conn:
            execute(
                conn,
                """
                insert into admin_sessions (session_id, key, value)
                values (%s, %s, %s::jsonb)
                on conflict (session_id, key) do update set value=excluded.value, updated_at=now()
                """,
                [self._session_id, key, _json_dumps(value)],
                query_name="admin_sessions.set",
            )

    def clear(self, key: str) -> None:
        with get_conn() as conn:
            execute(
                conn,
                "delete from admin_sessions where session_id=%s and key=%s",
                [self._session_id, key],
                query_name="admin_sessions.clear",
            )


class DbSessionStore:
    def __init__(self, ttl_seconds: float = 0) -> None:
        self._ttl = ttl_seconds

    def for_session(self, session_id: str) -> DbSessionHandle:
        return DbSessionHandle(session_id)

    def prune(self) -> int:
        if self._ttl <= 0:
            return 0
        with get_conn() as conn:
            return execute(
                conn,
                "delete from admin_sessions where updated_at < now() - make_interval(secs => %s)",
                [float(self._ttl)],
                query_name="admin_sessions.prune",
            )
