"""Tests for the SQLite tenant record store."""

import json
import sqlite3
from dataclasses import replace

import pytest

from outpost_core.provisioning.models import SECRET_FIELDS, TenantInfrastructure
from outpost_core.records.sqlite import SQLiteTenantRecordStore
from outpost_core.utils.crypto import generate_secret_key


def make_record(tenant_id: str = "t-1", project_ref: str = "proj-abc") -> TenantInfrastructure:
    return TenantInfrastructure(
        tenant_id=tenant_id,
        resource_id=42,
        resource_name="alice",
        gateway_url="wss://api.example.com",
        internal_gateway_url="http://203.0.113.5:18789",
        gateway_token="gw-token",
        hook_token="hook-token",
        remote_access_secret="remote-secret",
        ip_address="203.0.113.5",
        project_ref=project_ref,
        service_credential="service-key",
        created_at=1700000000.0,
        subdomain="alice.example.com",
        tls_enabled=True,
        configured_tools=["supabase", "firecrawl"],
    )


@pytest.fixture
async def store():
    store = SQLiteTenantRecordStore(path=":memory:")
    yield store
    await store.close()


class TestSQLiteTenantRecordStore:
    """Tests for SQLiteTenantRecordStore."""

    @pytest.mark.asyncio
    async def test_save_and_get(self, store):
        record = make_record()
        await store.save(record)

        assert await store.get("t-1") == record
        assert await store.get_by_project("proj-abc") == record

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        assert await store.get("nobody") is None
        assert await store.get_by_project("nothing") is None

    @pytest.mark.asyncio
    async def test_overwrite_moves_index(self, store):
        await store.save(make_record())
        await store.save(replace(make_record(), project_ref="proj-new"))

        assert await store.get_by_project("proj-abc") is None
        assert (await store.get_by_project("proj-new")).tenant_id == "t-1"

    @pytest.mark.asyncio
    async def test_delete(self, store):
        await store.save(make_record())
        await store.delete("t-1")

        assert await store.get("t-1") is None
        assert await store.get_by_project("proj-abc") is None

    @pytest.mark.asyncio
    async def test_persists_to_file(self, tmp_path):
        path = str(tmp_path / "nested" / "records.db")
        first = SQLiteTenantRecordStore(path=path)
        await first.save(make_record())
        await first.close()

        second = SQLiteTenantRecordStore(path=path)
        try:
            assert (await second.get("t-1")).gateway_token == "gw-token"
        finally:
            await second.close()

    @pytest.mark.asyncio
    async def test_failed_write_leaves_no_partial_state(self, store):
        await store.save(make_record())
        conn = store._get_connection()
        conn.execute("DROP TABLE project_index")
        conn.execute("CREATE TABLE project_index (project_ref TEXT PRIMARY KEY, tenant_id TEXT NOT NULL CHECK (0))")

        with pytest.raises(sqlite3.IntegrityError):
            await store.save(replace(make_record(), gateway_token="changed"))

        assert (await store.get("t-1")).gateway_token == "gw-token"


class TestEncryption:
    """Tests for secret field encryption at rest."""

    @pytest.mark.asyncio
    async def test_secrets_encrypted_on_disk(self, tmp_path):
        path = tmp_path / "records.db"
        store = SQLiteTenantRecordStore(path=str(path), encryption_key=generate_secret_key())
        record = make_record()
        await store.save(record)

        raw = sqlite3.connect(str(path)).execute(
            "SELECT data FROM tenant_infrastructure WHERE tenant_id = 't-1'"
        ).fetchone()[0]
        stored = json.loads(raw)

        for name in SECRET_FIELDS:
            assert stored[name] != getattr(record, name)
        assert stored["gateway_url"] == record.gateway_url
        assert await store.get("t-1") == record
        await store.close()

    @pytest.mark.asyncio
    async def test_without_key_stored_plain(self, store):
        await store.save(make_record())
        raw = store._get_connection().execute("SELECT data FROM tenant_infrastructure").fetchone()[0]
        assert json.loads(raw)["gateway_token"] == "gw-token"
