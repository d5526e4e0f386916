"""Tests for wiring and the Outpost lifecycle."""

import logging

import httpx
import pytest
import yaml

from outpost_core import Outpost, build_orchestrator
from outpost_core.config import Config
from outpost_core.exceptions import ConfigError
from outpost_core.observability import configure_logging
from outpost_core.providers.compute.digitalocean import DigitalOceanComputeProvider
from outpost_core.providers.compute.hetzner import HetznerComputeProvider
from outpost_core.providers.database.supabase import SupabaseProjectProvider
from outpost_core.providers.dns.digitalocean import DigitalOceanDnsProvider
from outpost_core.records.memory import MemoryTenantRecordStore
from outpost_core.remote.ssh import SSHExecutor


class TestBuildOrchestrator:
    """Tests for build_orchestrator."""

    def test_default_backends(self, config):
        orchestrator = build_orchestrator(config, httpx.AsyncClient())

        assert isinstance(orchestrator.compute, DigitalOceanComputeProvider)
        assert isinstance(orchestrator.dns, DigitalOceanDnsProvider)
        assert isinstance(orchestrator.database, SupabaseProjectProvider)
        assert isinstance(orchestrator.executor, SSHExecutor)
        assert isinstance(orchestrator.records, MemoryTenantRecordStore)
        assert orchestrator.configurator.executor is orchestrator.executor

    def test_hetzner_backend(self, sample_config_dict):
        sample_config_dict["compute"]["backend"] = "hetzner"
        orchestrator = build_orchestrator(Config.from_dict(sample_config_dict), httpx.AsyncClient())
        assert isinstance(orchestrator.compute, HetznerComputeProvider)

    def test_explicit_records_and_environ(self, config):
        records = MemoryTenantRecordStore()
        orchestrator = build_orchestrator(
            config, httpx.AsyncClient(), records=records, environ={"FIRECRAWL_API_KEY": "k"}
        )

        assert orchestrator.records is records
        assert orchestrator.configurator.environ == {"FIRECRAWL_API_KEY": "k"}

    def test_missing_credentials(self):
        with pytest.raises(ConfigError):
            build_orchestrator(Config.from_dict({}), httpx.AsyncClient())


class TestOutpost:
    """Tests for the Outpost lifecycle."""

    @pytest.mark.asyncio
    async def test_context_manager(self, sample_config_dict):
        async with Outpost.from_dict(sample_config_dict) as outpost:
            assert outpost.queue.running
            assert outpost.orchestrator.get_status(1) is None

        with pytest.raises(RuntimeError, match="not started"):
            outpost.orchestrator

    def test_properties_before_start(self, config):
        outpost = Outpost(config)
        with pytest.raises(RuntimeError, match="not started"):
            outpost.queue

    @pytest.mark.asyncio
    async def test_start_configures_logging(self, sample_config_dict):
        sample_config_dict["logging"] = {"level": "debug", "format": "text"}
        async with Outpost.from_dict(sample_config_dict):
            assert logging.getLogger("outpost_core").level == logging.DEBUG
        configure_logging()

    @pytest.mark.asyncio
    async def test_from_config_file(self, tmp_path, sample_config_dict):
        path = tmp_path / "outpost.yaml"
        path.write_text(yaml.safe_dump(sample_config_dict))

        outpost = Outpost.from_config(path)
        assert outpost.config.dns.domain == "example.com"

    @pytest.mark.asyncio
    async def test_sqlite_records_closed(self, sample_config_dict, tmp_path):
        sample_config_dict["records"] = {"backend": "sqlite", "path": str(tmp_path / "r.db")}
        outpost = Outpost.from_dict(sample_config_dict)
        await outpost.start()
        records = outpost._records
        await records.get("t-1")
        assert records._conn is not None
        await outpost.close()

        assert records._conn is None
