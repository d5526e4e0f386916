"""Outpost Core - Per-tenant agent runtime provisioning."""

from outpost_core.bootstrap import Outpost, build_orchestrator
from outpost_core.config import Config
from outpost_core.exceptions import (
    CommandFailedError,
    ConfigError,
    DeadlineExceededError,
    OutpostError,
    ProviderError,
    ProvisioningError,
    QueueFullError,
    RemoteConnectionError,
    TeardownError,
    TenantNotFoundError,
)
from outpost_core.observability import (
    LogLevel,
    ProvisioningContext,
    StructuredLogger,
    Timer,
    configure_logging,
    emit_counter,
    emit_metric,
    emit_timer,
    get_logger,
    register_metric_callback,
)
from outpost_core.provisioning import (
    ClientTenantInfrastructure,
    CreateResult,
    Phase,
    ProvisioningOrchestrator,
    ProvisioningQueue,
    ProvisioningStatus,
    StatusRegistry,
    TenantInfrastructure,
    to_client_projection,
)

__version__ = "0.1.0"
__all__ = [
    # Core
    "Config",
    "Outpost",
    "build_orchestrator",
    # Provisioning
    "ClientTenantInfrastructure",
    "CreateResult",
    "Phase",
    "ProvisioningOrchestrator",
    "ProvisioningQueue",
    "ProvisioningStatus",
    "StatusRegistry",
    "TenantInfrastructure",
    "to_client_projection",
    # Errors
    "CommandFailedError",
    "ConfigError",
    "DeadlineExceededError",
    "OutpostError",
    "ProviderError",
    "ProvisioningError",
    "QueueFullError",
    "RemoteConnectionError",
    "TeardownError",
    "TenantNotFoundError",
    # Observability
    "LogLevel",
    "ProvisioningContext",
    "StructuredLogger",
    "Timer",
    "configure_logging",
    "emit_counter",
    "emit_metric",
    "emit_timer",
    "get_logger",
    "register_metric_callback",
]
