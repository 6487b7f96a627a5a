from __future__ import annotations

import asyncio
import os
import sqlite3
import unittest

from controller.consent_store import ConsentGate
from controller.consent_store import get_consent_record_sync
from controller.consent_store import has_agreed_sync
from controller.consent_store import record_agreement_sync
from db.migrate import apply_sqlite_migrations


def _conn() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    apply_sqlite_migrations(conn, os.path.join(os.getcwd(), "migrations"))
    return conn


class ConsentStoreTests(unittest.TestCase):
    def test_unknown_user_has_not_agreed(self):
        conn = _conn()
        self.assertFalse(has_agreed_sync(conn, "u2"))
        self.assertIsNone(get_consent_record_sync(conn, "u2"))

    def test_record_then_has_agreed(self):
        conn = _conn()
        self.assertTrue(record_agreement_sync(conn, "u1", "Alice", agreed_at=1000))
        self.assertTrue(has_agreed_sync(conn, "u1"))
        record = get_consent_record_sync(conn, "u1")
        self.assertEqual((record.user_id, record.username, record.agreed_at), ("u1", "Alice", 1000))

    def test_second_agreement_keeps_first_record(self):
        conn = _conn()
        record_agreement_sync(conn, "u1", "Alice", agreed_at=1000)
        self.assertFalse(record_agreement_sync(conn, "u1", "Alicia", agreed_at=2000))
        record = get_consent_record_sync(conn, "u1")
        self.assertEqual((record.username, record.agreed_at), ("Alice", 1000))


class ConsentGateTests(unittest.IsolatedAsyncioTestCase):
    async def test_gate_records_and_checks(self):
        gate = ConsentGate(db_lock=asyncio.Lock(), db_conn=_conn())
        self.assertFalse(await gate.has_agreed("u1"))
        self.assertTrue(await gate.record_agreement("u1", "Alice"))
        self.assertTrue(await gate.has_agreed("u1"))
        self.assertFalse(await gate.record_agreement("u1", "Alice"))


if __name__ == "__main__":
    unittest.main()
