from __future__ import annotations

import os
import sqlite3
import tempfile
import unittest
from pathlib import Path

from db.migrate import apply_sqlite_migrations
from db.migrate import discover_migrations
from db.migrate import list_applied_migrations_sync


class MigrateTests(unittest.TestCase):
    def test_repo_migrations_apply_once(self):
        conn = sqlite3.connect(":memory:")
        migrations_dir = os.path.join(os.getcwd(), "migrations")
        first = apply_sqlite_migrations(conn, migrations_dir)
        self.assertEqual(
            first,
            ["0001_conversations.py", "0002_consent_records.py", "0003_guild_model_bindings.py"],
        )
        self.assertEqual(apply_sqlite_migrations(conn, migrations_dir), [])
        self.assertEqual(sorted(list_applied_migrations_sync(conn)), ["0001", "0002", "0003"])

    def test_changed_migration_content_is_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "0001_demo.sql"
            path.write_text("CREATE TABLE demo (id INTEGER);", encoding="utf-8")
            conn = sqlite3.connect(":memory:")
            apply_sqlite_migrations(conn, tmp)
            path.write_text("CREATE TABLE demo (id INTEGER, name TEXT);", encoding="utf-8")
            with self.assertRaises(RuntimeError):
                apply_sqlite_migrations(conn, tmp)

    def test_discovery_ignores_unrelated_files(self):
        with tempfile.TemporaryDirectory() as tmp:
            (Path(tmp) / "README.md").write_text("notes", encoding="utf-8")
            (Path(tmp) / "0002_b.sql").write_text("", encoding="utf-8")
            (Path(tmp) / "0001_a.sql").write_text("", encoding="utf-8")
            labels = [m.label for m in discover_migrations(tmp)]
            self.assertEqual(labels, ["0001_a.sql", "0002_b.sql"])

    def test_missing_directory_raises(self):
        conn = sqlite3.connect(":memory:")
        with self.assertRaises(RuntimeError):
            apply_sqlite_migrations(conn, os.path.join(os.getcwd(), "no-such-migrations"))


if __name__ == "__main__":
    unittest.main()
