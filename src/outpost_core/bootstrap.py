"""Wiring: build the orchestrator and its collaborators from configuration."""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import httpx

from outpost_core.config import Config
from outpost_core.observability import LogLevel, Timer, configure_logging, emit_timer, get_logger
from outpost_core.protocols import TenantRecordStore
from outpost_core.providers import (
    get_compute_provider,
    get_database_project_provider,
    get_dns_provider,
)
from outpost_core.provisioning.configurator import ToolConfigurator
from outpost_core.provisioning.orchestrator import ProvisioningOrchestrator
from outpost_core.provisioning.queue import ProvisioningQueue
from outpost_core.records import get_record_store
from outpost_core.remote.ssh import SSHExecutor

logger = get_logger(__name__)

DEFAULT_HTTP_TIMEOUT = 30.0


def build_orchestrator(
    config: Config,
    client: httpx.AsyncClient,
    records: TenantRecordStore | None = None,
    environ: Mapping[str, str] | None = None,
) -> ProvisioningOrchestrator:
    """Build an orchestrator with the backends selected in ``config``.

    Args:
        config: Application configuration
        client: Shared HTTP client for every provider API
        records: Record store (built from config if omitted)
        environ: Source for tool secrets (defaults to ``os.environ``)

    Returns:
        Configured orchestrator
    """
    executor = SSHExecutor(config)
    return ProvisioningOrchestrator(
        config,
        compute=get_compute_provider(config, client),
        dns=get_dns_provider(config, client),
        database=get_database_project_provider(config, client),
        executor=executor,
        records=records if records is not None else get_record_store(config),
        configurator=ToolConfigurator(config, executor, environ=environ),
    )


class Outpost:
    """Owns the HTTP client, record store, orchestrator and work queue.

    Example usage:
        async with Outpost.from_config("outpost.yaml") as outpost:
            result = await outpost.orchestrator.create_and_provision("alice")
            outpost.queue.submit(result.resource_id, result.secret, tenant_id="t-1")
            ...
            status = outpost.orchestrator.get_status(result.resource_id)
    """

    def __init__(self, config: Config, environ: Mapping[str, str] | None = None) -> None:
        """Initialize with configuration.

        Use `Outpost.from_config()` for convenience.
        """
        self.config = config
        self._environ = environ
        self._client: httpx.AsyncClient | None = None
        self._records: TenantRecordStore | None = None
        self._orchestrator: ProvisioningOrchestrator | None = None
        self._queue: ProvisioningQueue | None = None

    @classmethod
    def from_config(cls, path: str | Path) -> "Outpost":
        """Create from a YAML or JSON configuration file."""
        return cls(Config.from_file(path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "Outpost":
        """Create from a configuration dictionary."""
        return cls(Config.from_dict(config_dict))

    async def start(self) -> None:
        """Build every component and start the queue workers."""
        if self._orchestrator is not None:
            return

        with Timer() as timer:
            configure_logging(LogLevel(self.config.logging.level.upper()), self.config.logging.format)

            self._client = httpx.AsyncClient(timeout=DEFAULT_HTTP_TIMEOUT)
            self._records = get_record_store(self.config)
            self._orchestrator = build_orchestrator(
                self.config,
                self._client,
                records=self._records,
                environ=self._environ,
            )
            self._queue = ProvisioningQueue(
                self._orchestrator,
                max_pending=self.config.queue.max_pending,
                workers=self.config.queue.workers,
            )
            self._queue.start()

        logger.info(
            "Outpost started",
            context={
                "compute": self.config.compute.backend,
                "dns": self.config.dns.backend,
                "records": self.config.records.backend,
            },
            duration_ms=timer.duration_ms,
        )
        emit_timer("outpost.init", timer.duration_ms)

    async def close(self) -> None:
        """Drain the queue and release resources."""
        if self._queue is not None:
            await self._queue.stop()
        if self._records is not None:
            await self._records.close()
        if self._client is not None:
            await self._client.aclose()

        self._client = None
        self._records = None
        self._orchestrator = None
        self._queue = None

    @property
    def orchestrator(self) -> ProvisioningOrchestrator:
        if self._orchestrator is None:
            raise RuntimeError("Outpost not started. Use async context manager or call start() first.")
        return self._orchestrator

    @property
    def queue(self) -> ProvisioningQueue:
        if self._queue is None:
            raise RuntimeError("Outpost not started. Use async context manager or call start() first.")
        return self._queue

    async def __aenter__(self) -> "Outpost":
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
