"""PostgreSQL helpers: connection pool plus timed, named, logged queries."""

from __future__ import annotations

import contextvars
import logging
import os
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterable

import psycopg2
import psycopg2.extras
from psycopg2.pool import SimpleConnectionPool


_POOL: SimpleConnectionPool | None = None
_logger = logging.getLogger("adminkit.db")
_query_logger = logging.getLogger("adminkit.db.query")
_DB_STATS: contextvars.ContextVar[dict | None] = contextvars.ContextVar("adminkit_db_stats", default=None)
_SLOW_MS = float(os.getenv("ADMIN_QUERY_SLOW_MS", "200"))
_LOG_ALL = os.getenv("ADMIN_QUERY_LOG", "").strip() == "1"


def get_db_url() -> str:
    for name in ("ADMIN_DB_URL", "DATABASE_URL"):
        value = os.getenv(name, "").strip()
        if value:
            return value
    raise RuntimeError("ADMIN_DB_URL or DATABASE_URL is required when USE_DB=1")


def _param_repr(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}>"
    if isinstance(value, str) and len(value) > 80:
        return f"{value[:40]}...{value[-10:]}"
    return value


def _redact_params(params: Iterable[Any] | None) -> list[Any] | None:
    return None if params is None else [_param_repr(value) for value in params]


def _log_query(query_name: str | None, params: Iterable[Any] | None, elapsed_ms: float, rowcount: int | None) -> None:
    slow = elapsed_ms >= _SLOW_MS
    if not (query_name or _LOG_ALL or slow):
        return
    level = logging.WARNING if slow else logging.INFO
    _query_logger.log(
        level,
        "db_query name=%s ms=%.2f rows=%s slow=%s params=%s",
        query_name or "unnamed",
        elapsed_ms,
        rowcount,
        slow,
        _redact_params(params),
    )


def init_pool(minconn: int | None = None, maxconn: int | None = None) -> SimpleConnectionPool:
    global _POOL
    if _POOL is None:
        low = minconn if minconn is not None else int(os.getenv("ADMIN_DB_POOL_MIN", "1"))
        high = maxconn if maxconn is not None else int(os.getenv("ADMIN_DB_POOL_MAX", "10"))
        _POOL = SimpleConnectionPool(low, high, dsn=get_db_url())
        _logger.info("db_pool_ready min=%s max=%s", low, high)
    return _POOL


def reset_db_stats() -> None:
    _DB_STATS.set({"queries": 0, "total_ms": 0.0, "acquire_ms": 0.0})


def get_db_stats() -> dict:
    return _DB_STATS.get() or {"queries": 0, "total_ms": 0.0, "acquire_ms": 0.0}


def _add_stats(**deltas: float) -> None:
    stats = dict(get_db_stats())
    for key, delta in deltas.items():
        stats[key] = stats.get(key, 0) + delta
    _DB_STATS.set(stats)


@contextmanager
def get_conn():
    pool = init_pool()
    started = time.perf_counter()
    conn = pool.getconn()
    _add_stats(acquire_ms=(time.perf_counter() - started) * 1000)
    _logger.debug("db_conn borrowed")
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)
        _logger.debug("db_conn returned")


def _run(conn, sql: str, params: Iterable[Any] | None, query_name: str | None, read: Callable | None, dict_rows: bool) -> tuple[Any, int]:
    start = time.perf_counter()
    factory = psycopg2.extras.RealDictCursor if dict_rows else None
    with conn.cursor(cursor_factory=factory) as cur:
        cur.execute(sql, params or [])
        result = read(cur) if read is not None else None
        rowcount = cur.rowcount
    elapsed_ms = (time.perf_counter() - start) * 1000
    _add_stats(queries=1, total_ms=elapsed_ms)
    _log_query(query_name, params, elapsed_ms, rowcount)
    return result, rowcount


def fetch_one(conn, sql: str, params: Iterable[Any] | None = None, query_name: str | None = None) -> dict | None:
    row, _ = _run(conn, sql, params, query_name, lambda cur: cur.fetchone(), True)
    return dict(row) if row else None


def fetch_all(conn, sql: str, params: Iterable[Any] | None = None, query_name: str | None = None) -> list[dict]:
    rows, _ = _run(conn, sql, params, query_name, lambda cur: cur.fetchall(), True)
    return [dict(r) for r in rows]


def execute(conn, sql: str, params: Iterable[Any] | None = None, query_name: str | None = None) -> int:
    _, rowcount = _run(conn, sql, params, query_name, None, False)
    return rowcount
