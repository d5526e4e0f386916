"""Backends and fakes satisfy the runtime-checkable protocols."""

import httpx

from outpost_core.protocols import (
    ComputeProvider,
    ComputeState,
    DatabaseProjectProvider,
    DnsProvider,
    RemoteExecutor,
    TenantRecordStore,
)
from outpost_core.providers.compute.digitalocean import DigitalOceanComputeProvider
from outpost_core.providers.compute.hetzner import HetznerComputeProvider
from outpost_core.providers.database.supabase import SupabaseProjectProvider
from outpost_core.providers.dns.hetzner import HetznerDnsProvider
from outpost_core.records.memory import MemoryTenantRecordStore
from outpost_core.records.sqlite import SQLiteTenantRecordStore
from outpost_core.remote.ssh import SSHExecutor

from fakes import FakeComputeProvider, FakeDatabaseProvider, FakeDnsProvider, FakeRemoteExecutor


class TestProtocols:
    """isinstance checks against each protocol."""

    def test_compute(self, config):
        client = httpx.AsyncClient()
        assert isinstance(DigitalOceanComputeProvider(config, client), ComputeProvider)
        assert isinstance(HetznerComputeProvider(config, client), ComputeProvider)
        assert isinstance(FakeComputeProvider(), ComputeProvider)

    def test_dns(self, config):
        assert isinstance(HetznerDnsProvider(config, httpx.AsyncClient()), DnsProvider)
        assert isinstance(FakeDnsProvider(), DnsProvider)

    def test_database(self, config):
        assert isinstance(SupabaseProjectProvider(config, httpx.AsyncClient()), DatabaseProjectProvider)
        assert isinstance(FakeDatabaseProvider(), DatabaseProjectProvider)

    def test_remote(self, config):
        assert isinstance(SSHExecutor(config), RemoteExecutor)
        assert isinstance(FakeRemoteExecutor(), RemoteExecutor)

    def test_records(self):
        assert isinstance(MemoryTenantRecordStore(), TenantRecordStore)
        assert isinstance(SQLiteTenantRecordStore(path=":memory:"), TenantRecordStore)

    def test_compute_state_readiness(self):
        assert ComputeState(status="active", ipv4="1.2.3.4").is_ready
        assert not ComputeState(status="active").is_ready
        assert not ComputeState(status="new", ipv4="1.2.3.4").is_ready
