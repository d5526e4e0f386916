"""SQLite tenant record store."""

import asyncio
import json
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from outpost_core.provisioning.models import SECRET_FIELDS, TenantInfrastructure
from outpost_core.utils.crypto import TokenEncryption

SCHEMA = """
CREATE TABLE IF NOT EXISTS tenant_infrastructure (
    tenant_id TEXT PRIMARY KEY,
    project_ref TEXT,
    data TEXT NOT NULL,
    updated_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS project_index (
    project_ref TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL
);
"""


class SQLiteTenantRecordStore:
    """SQLite tenant record store.

    Records are stored as JSON. The record row and its project index row
    are written in one transaction. With an encryption key, secret fields
    are Fernet-encrypted before they reach disk.
    """

    def __init__(
        self,
        path: str | None = None,
        encryption_key: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize SQLite record store.

        Args:
            path: Path to SQLite database file. Defaults to ./data/outpost.db
                  Use ":memory:" for in-memory database.
            encryption_key: Optional Fernet key for secret fields
            **kwargs: Ignored (for compatibility with other backends)
        """
        if path == ":memory:":
            self.path: str | Path = ":memory:"
        else:
            self.path = Path(path) if path else Path("./data/outpost.db")
            self.path.parent.mkdir(parents=True, exist_ok=True)

        self._encryption = TokenEncryption(encryption_key) if encryption_key else None
        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(SCHEMA)
        return self._conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def _encode(self, record: TenantInfrastructure) -> str:
        data = record.to_dict()
        if self._encryption:
            for name in SECRET_FIELDS:
                if data.get(name):
                    data[name] = self._encryption.encrypt(data[name])
        return json.dumps(data)

    def _decode(self, raw: str) -> TenantInfrastructure:
        data = json.loads(raw)
        if self._encryption:
            for name in SECRET_FIELDS:
                if data.get(name):
                    data[name] = self._encryption.decrypt(data[name])
        return TenantInfrastructure.from_dict(data)

    async def save(self, record: TenantInfrastructure) -> None:
        """Insert or replace a record and its project index entry."""
        payload = self._encode(record)
        async with self._lock:
            with self._transaction() as conn:
                conn.execute("DELETE FROM project_index WHERE tenant_id = ?", (record.tenant_id,))
                conn.execute(
                    "INSERT OR REPLACE INTO tenant_infrastructure "
                    "(tenant_id, project_ref, data, updated_at) VALUES (?, ?, ?, ?)",
                    (record.tenant_id, record.project_ref, payload, time.time()),
                )
                if record.project_ref:
                    conn.execute(
                        "INSERT OR REPLACE INTO project_index (project_ref, tenant_id) VALUES (?, ?)",
                        (record.project_ref, record.tenant_id),
                    )

    async def get(self, tenant_id: str) -> TenantInfrastructure | None:
        """Get a tenant's record."""
        async with self._lock:
            row = self._get_connection().execute(
                "SELECT data FROM tenant_infrastructure WHERE tenant_id = ?",
                (tenant_id,),
            ).fetchone()
        return self._decode(row["data"]) if row else None

    async def get_by_project(self, project_ref: str) -> TenantInfrastructure | None:
        """Get a record by its database project ref."""
        async with self._lock:
            row = self._get_connection().execute(
                "SELECT t.data FROM project_index p "
                "JOIN tenant_infrastructure t ON t.tenant_id = p.tenant_id "
                "WHERE p.project_ref = ?",
                (project_ref,),
            ).fetchone()
        return self._decode(row["data"]) if row else None

    async def delete(self, tenant_id: str) -> None:
        """Delete a record and its index entry."""
        async with self._lock:
            with self._transaction() as conn:
                conn.execute("DELETE FROM project_index WHERE tenant_id = ?", (tenant_id,))
                conn.execute("DELETE FROM tenant_infrastructure WHERE tenant_id = ?", (tenant_id,))

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
