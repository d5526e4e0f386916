"""Pytest configuration and fixtures."""

import pytest

from outpost_core.config import Config
from outpost_core.observability import register_metric_callback, unregister_metric_callback
from outpost_core.provisioning.orchestrator import ProvisioningOrchestrator
from outpost_core.provisioning.pairing import PairingOutcome
from outpost_core.records.memory import MemoryTenantRecordStore

from fakes import (
    FakeComputeProvider,
    FakeDatabaseProvider,
    FakeDnsProvider,
    FakePairing,
    FakeRemoteExecutor,
    RecordingRegistry,
)

# Real deadlines scaled down ~1000x so deadline tests run in milliseconds
FAST_TIMEOUTS = {
    "compute_poll_interval": 0.005,
    "compute_ready_timeout": 0.3,
    "port_poll_interval": 0.002,
    "port_ready_timeout": 0.12,
    "port_probe_timeout": 0.05,
    "auth_poll_interval": 0.005,
    "auth_ready_timeout": 0.18,
    "project_poll_interval": 0.005,
    "project_ready_timeout": 0.18,
    "verify_interval": 0.002,
    "verify_timeout": 0.05,
    "pairing_timeout": 0.1,
    "pairing_receive_timeout": 0.01,
    "pairing_open_attempts": 3,
    "pairing_open_retry_delay": 0.001,
}


@pytest.fixture
def sample_config_dict():
    """Sample configuration dictionary for testing."""
    return {
        "compute": {
            "backend": "digitalocean",
            "digitalocean": {"api_token": "do-test-token"},
            "hetzner": {"api_token": "hz-test-token", "snapshot_id": "12345"},
        },
        "dns": {"backend": "digitalocean", "domain": "example.com", "api_token": "dns-test-token"},
        "database": {
            "management_token": "sbp-test-token",
            "organization_id": "org-1",
            "webhook_base_url": "https://hooks.example.com",
            "webhook_secret": "hook-secret",
        },
        "remote": {"max_attempts": 3, "retry_backoff_seconds": 0},
        "gateway": {"public_url": "wss://api.example.com"},
        "timeouts": dict(FAST_TIMEOUTS),
    }


@pytest.fixture
def config(sample_config_dict) -> Config:
    """Configuration with fast timeouts."""
    return Config.from_dict(sample_config_dict)


@pytest.fixture
def compute() -> FakeComputeProvider:
    return FakeComputeProvider()


@pytest.fixture
def dns() -> FakeDnsProvider:
    return FakeDnsProvider()


@pytest.fixture
def database() -> FakeDatabaseProvider:
    return FakeDatabaseProvider()


@pytest.fixture
def executor() -> FakeRemoteExecutor:
    return FakeRemoteExecutor()


@pytest.fixture
def records() -> MemoryTenantRecordStore:
    return MemoryTenantRecordStore()


@pytest.fixture
def registry() -> RecordingRegistry:
    return RecordingRegistry()


@pytest.fixture
def pairing() -> FakePairing:
    return FakePairing(PairingOutcome.CONNECTED)


@pytest.fixture
def orchestrator(
    config, compute, dns, database, executor, records, registry, pairing
) -> ProvisioningOrchestrator:
    """Orchestrator wired to in-memory fakes."""
    return ProvisioningOrchestrator(
        config,
        compute=compute,
        dns=dns,
        database=database,
        executor=executor,
        records=records,
        registry=registry,
        pairing=pairing,
    )


@pytest.fixture
def metrics():
    """Collect emitted metrics as (name, value, labels) tuples."""
    received: list[tuple] = []

    def callback(name: str, value: float, labels: dict) -> None:
        received.append((name, value, labels))

    register_metric_callback(callback)
    yield received
    unregister_metric_callback(callback)
