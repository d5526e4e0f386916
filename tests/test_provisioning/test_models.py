"""Tests for tenant infrastructure records and the client projection."""

from dataclasses import fields

import pytest

from outpost_core.provisioning.models import (
    SECRET_FIELDS,
    ClientTenantInfrastructure,
    TenantInfrastructure,
    to_client_projection,
)


@pytest.fixture
def record() -> TenantInfrastructure:
    return TenantInfrastructure(
        tenant_id="t-1",
        resource_id=42,
        resource_name="alice",
        gateway_url="wss://api.example.com",
        internal_gateway_url="http://203.0.113.5:18789",
        gateway_token="gw-token",
        hook_token="hook-token",
        remote_access_secret="remote-secret",
        ip_address="203.0.113.5",
        project_ref="proj-abc",
        service_credential="service-key",
        created_at=1700000000.0,
        configured_tools=["supabase"],
    )


class TestTenantInfrastructure:
    """Tests for TenantInfrastructure."""

    def test_dict_round_trip(self, record):
        assert TenantInfrastructure.from_dict(record.to_dict()) == record

    def test_from_dict_defaults(self, record):
        data = record.to_dict()
        for key in ("hook_token", "subdomain", "status", "tls_enabled", "configured_tools"):
            data.pop(key)

        restored = TenantInfrastructure.from_dict(data)

        assert restored.hook_token == ""
        assert restored.subdomain is None
        assert restored.status == "active"
        assert restored.tls_enabled is False
        assert restored.configured_tools == []

    def test_secret_fields_exist(self, record):
        names = {f.name for f in fields(TenantInfrastructure)}
        assert set(SECRET_FIELDS) <= names


class TestClientProjection:
    """Tests for to_client_projection."""

    def test_strips_operator_only_fields(self, record):
        client = to_client_projection(record)
        data = client.to_dict()

        for hidden in ("internal_gateway_url", "remote_access_secret", "hook_token",
                       "service_credential", "project_ref"):
            assert hidden not in data
        for value in ("remote-secret", "hook-token", "service-key", "http://203.0.113.5:18789"):
            assert value not in data.values()

    def test_keeps_client_fields(self, record):
        client = to_client_projection(record)

        assert isinstance(client, ClientTenantInfrastructure)
        assert client.gateway_url == "wss://api.example.com"
        assert client.gateway_token == "gw-token"
        assert client.configured_tools == ("supabase",)
        assert client.to_dict()["configured_tools"] == ["supabase"]

    def test_projection_does_not_share_tool_list(self, record):
        client = to_client_projection(record)
        record.configured_tools.append("firecrawl")
        assert client.configured_tools == ("supabase",)

    def test_every_client_field_exists_on_record(self):
        record_names = {f.name for f in fields(TenantInfrastructure)}
        assert {f.name for f in fields(ClientTenantInfrastructure)} <= record_names
