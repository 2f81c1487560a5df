import json
import os
import sys
import unittest
from contextlib import contextmanager
from unittest import mock

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from app import db
from app.admin_modules import register_entities
from app.stores_db import DbRecordStore, DbSessionHandle, DbSessionStore, DbSettingsStore
from entity_catalog import EntityCatalog


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rowcount = -1

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params):
        self.conn.calls.append((" ".join(sql.split()), list(params)))
        self.rowcount = self.conn.rowcount

    def fetchone(self):
        return self.conn.rows[0] if self.conn.rows else None

    def fetchall(self):
        return list(self.conn.rows)


class FakeConn:
    def __init__(self, rows=None, rowcount=1):
        self.rows = rows or []
        self.rowcount = rowcount
        self.calls = []

    def cursor(self, cursor_factory=None):
        return FakeCursor(self)


def _patched(conn):
    @contextmanager
    def fake_get_conn():
        yield conn

    return mock.patch("app.stores_db.get_conn", fake_get_conn)


class TestDbRecordStore(unittest.TestCase):
    def setUp(self) -> None:
        self.store = DbRecordStore(register_entities(EntityCatalog()))

    def test_search_filters_and_sorts_rows(self) -> None:
        conn = FakeConn(rows=[{"id": 2, "data": json.dumps({"Name": "staff"})}, {"id": 1, "data": {"Name": "admin"}}])
        with _patched(conn):
            everything = self.store.search("Role", sort_column="Name")
            admins = self.store.search("Role", {"Name": "admin"})
        self.assertEqual([(r.id, r.get("Name")) for r in everything], [(1, "admin"), (2, "staff")])
        self.assertEqual([r.id for r in admins], [1])

    def test_id_lists_are_pushed_into_the_query(self) -> None:
        conn = FakeConn(rows=[{"id": 3, "data": {"Name": "x"}}])
        with _patched(conn):
            found = self.store.search("Role", {"RoleID": ["3", "abc"]})
        sql, params = conn.calls[0]
        self.assertIn("id = any(%s)", sql)
        self.assertEqual(params, ["Role", [3]])
        self.assertEqual([r.id for r in found], [3])

    def test_insert_assigns_returned_id(self) -> None:
        conn = FakeConn(rows=[{"id": 7}])
        record = self.store.blank("Role")
        record.set("Name", "auditor")
        with _patched(conn):
            self.assertTrue(self.store.save(record))
        self.assertEqual(record.id, 7)
        payload = json.loads(conn.calls[0][1][2])
        self.assertEqual(payload["Name"], "auditor")
        self.assertNotIn("RoleID", payload)

    def test_load_missing_or_invalid(self) -> None:
        conn = FakeConn(rows=[])
        with _patched(conn):
            self.assertIsNone(self.store.load("Role", 9))
            self.assertIsNone(self.store.load("Role", "nine"))
        self.assertEqual(len(conn.calls), 1)


class TestDbSettingsAndSessions(unittest.TestCase):
    def test_write_without_row_raises(self) -> None:
        with _patched(FakeConn(rowcount=0)):
            with self.assertRaises(KeyError):
                DbSettingsStore().write_settings("Ticket", "{}")

    def test_session_roundtrip_decodes_json(self) -> None:
        conn = FakeConn(rows=[{"value": json.dumps({"ids": {"1": True}})}])
        with _patched(conn):
            handle = DbSessionHandle("sid")
            handle.set("edit_data.Ticket", {"ids": {"1": True}})
            value = handle.get("edit_data.Ticket")
        self.assertEqual(value, {"ids": {"1": True}})
        self.assertEqual(conn.calls[0][1][:2], ["sid", "edit_data.Ticket"])

    def test_prune_deletes_idle_rows(self) -> None:
        conn = FakeConn(rowcount=3)
        with _patched(conn):
            self.assertEqual(DbSessionStore(ttl_seconds=600).prune(), 3)
        sql, params = conn.calls[0]
        self.assertIn("delete from admin_sessions where updated_at <", sql)
        self.assertEqual(params, [600.0])

    def test_prune_without_ttl_skips_the_database(self) -> None:
        conn = FakeConn()
        with _patched(conn):
            self.assertEqual(DbSessionStore().prune(), 0)
        self.assertEqual(conn.calls, [])


class TestQueryHelpers(unittest.TestCase):
    def test_queries_are_counted(self) -> None:
        db.reset_db_stats()
        db.fetch_all(FakeConn(rows=[{"a": 1}]), "select 1", query_name="roles.list")
        db.execute(FakeConn(), "select 1")
        stats = db.get_db_stats()
        self.assertEqual(stats["queries"], 2)
        self.assertGreaterEqual(stats["total_ms"], 0.0)

    def test_params_are_redacted(self) -> None:
        long_text = "x" * 100
        redacted = db._redact_params([b"abc", long_text, 5])
        self.assertEqual(redacted[0], "<bytes:3>")
        self.assertTrue(redacted[1].startswith("x" * 40 + "..."))
        self.assertEqual(redacted[2], 5)


if __name__ == "__main__":
    unittest.main()
