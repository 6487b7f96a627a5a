from __future__ import annotations

import hashlib
import importlib.util
import re
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path


MIGRATION_RE = re.compile(r"^(\d{4})_([a-zA-Z0-9_]+)\.(sql|py)$")


@dataclass(frozen=True, slots=True)
class MigrationFile:
    version: str
    name: str
    ext: str
    path: Path

    @property
    def label(self) -> str:
        return f"{self.version}_{self.name}.{self.ext}"

    def checksum(self) -> str:
        return hashlib.sha256(self.path.read_bytes()).hexdigest()


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _ensure_migration_table(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            checksum TEXT NOT NULL,
            applied_at_utc TEXT NOT NULL
        )
        """
    )
    conn.commit()


def list_applied_migrations_sync(conn: sqlite3.Connection) -> dict[str, tuple[str, str, str]]:
    _ensure_migration_table(conn)
    cur = conn.cursor()
    cur.execute("SELECT version, name, checksum, applied_at_utc FROM schema_migrations ORDER BY version")
    return {str(v): (str(n), str(c), str(a)) for v, n, c, a in cur.fetchall()}


def discover_migrations(migrations_dir: str | Path) -> list[MigrationFile]:
    base = Path(migrations_dir)
    if not base.exists():
        raise RuntimeError(f"Migrations directory not found: {migrations_dir}")
    found: list[MigrationFile] = []
    for p in sorted(base.iterdir()):
        m = MIGRATION_RE.match(p.name) if p.is_file() else None
        if m:
            found.append(MigrationFile(version=m.group(1), name=m.group(2), ext=m.group(3), path=p))
    return found


def _run_migration(conn: sqlite3.Connection, migration: MigrationFile) -> None:
    if migration.ext == "sql":
        conn.executescript(migration.path.read_text(encoding="utf-8"))
        return

    spec = importlib.util.spec_from_file_location(f"ollacord_migration_{migration.path.stem}", str(migration.path))
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Could not load migration module: {migration.path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    upgrade = getattr(module, "upgrade", None)
    if not callable(upgrade):
        raise RuntimeError(f"Python migration missing upgrade(conn): {migration.path}")
    upgrade(conn)


def apply_sqlite_migrations(conn: sqlite3.Connection, migrations_dir: str | Path) -> list[str]:
    """
    Apply pending migrations in version order and return the labels applied.
    A version that was applied from different file content is a hard error.
    """
    applied = list_applied_migrations_sync(conn)
    ran: list[str] = []
    for migration in discover_migrations(migrations_dir):
        checksum = migration.checksum()
        existing = applied.get(migration.version)
        if existing:
            old_name, old_checksum, _applied_at = existing
            if old_name != migration.name or old_checksum != checksum:
                raise RuntimeError(
                    f"Migration version {migration.version} already applied with different content "
                    f"(existing name={old_name}, file name={migration.name})."
                )
            continue

        print(f"[DB] Applying migration {migration.label}")
        _run_migration(conn, migration)
        conn.execute(
            """
            INSERT INTO schema_migrations (version, name, checksum, applied_at_utc)
            VALUES (?, ?, ?, ?)
            """,
            (migration.version, migration.name, checksum, _utc_now_iso()),
        )
        conn.commit()
        ran.append(migration.label)
    return ran
