"""Tests for tenant schema bootstrap."""

import pytest

from outpost_core.provisioning.schema import (
    LEAD_AGENT_SQL,
    TENANT_SCHEMA_SQL,
    WEBHOOK_FUNCTION,
    bootstrap_schema,
    render_webhook_function_sql,
    render_webhook_trigger_sql,
    webhook_url,
)

from fakes import FakeDatabaseProvider


class TestSchemaSql:
    """Tests for the static SQL."""

    def test_creates_tenant_tables(self):
        for table in ("agents", "tasks", "task_messages", "task_documents",
                      "task_status_history", "task_assignees", "agent_actions"):
            assert f"CREATE TABLE IF NOT EXISTS public.{table}" in TENANT_SCHEMA_SQL

    def test_lead_agent_seed_is_idempotent(self):
        assert "ON CONFLICT (name) DO NOTHING" in LEAD_AGENT_SQL


class TestWebhookSql:
    """Tests for the webhook function and trigger."""

    def test_webhook_url(self):
        assert webhook_url("https://hooks.example.com/", "abc") == \
            "https://hooks.example.com/webhooks/tasks/abc"

    def test_function_escapes_quotes(self):
        sql = render_webhook_function_sql("https://h.example.com/x", "se'cret")
        assert "Bearer se''cret" in sql
        assert "url := 'https://h.example.com/x'" in sql
        assert sql.startswith(f"CREATE OR REPLACE FUNCTION {WEBHOOK_FUNCTION}()")

    def test_trigger_on_task_assignees(self):
        sql = render_webhook_trigger_sql()
        assert "AFTER INSERT ON public.task_assignees" in sql
        assert WEBHOOK_FUNCTION in sql


class TestBootstrapSchema:
    """Tests for bootstrap_schema."""

    @pytest.mark.asyncio
    async def test_without_webhook(self):
        provider = FakeDatabaseProvider()
        await bootstrap_schema(provider, "abc")
        assert provider.sql == [TENANT_SCHEMA_SQL, LEAD_AGENT_SQL]

    @pytest.mark.asyncio
    async def test_secret_without_url_skips_webhook(self):
        provider = FakeDatabaseProvider()
        await bootstrap_schema(provider, "abc", webhook_secret="s")
        assert len(provider.sql) == 2

    @pytest.mark.asyncio
    async def test_with_webhook(self):
        provider = FakeDatabaseProvider()
        await bootstrap_schema(provider, "abc", "https://hooks.example.com", "s")

        assert len(provider.sql) == 5
        assert provider.sql[2] == "CREATE EXTENSION IF NOT EXISTS pg_net;"
        assert "https://hooks.example.com/webhooks/tasks/abc" in provider.sql[3]
        assert provider.sql[4] == render_webhook_trigger_sql()
