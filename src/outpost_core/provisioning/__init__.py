"""Tenant infrastructure provisioning."""

from outpost_core.provisioning.configurator import ConfigBundle, ToolConfigurator, ToolTarget
from outpost_core.provisioning.models import (
    ClientTenantInfrastructure,
    TenantInfrastructure,
    to_client_projection,
)
from outpost_core.provisioning.orchestrator import CreateResult, ProvisioningOrchestrator
from outpost_core.provisioning.pairing import PairingHandshake, PairingOutcome
from outpost_core.provisioning.queue import ProvisioningJob, ProvisioningQueue
from outpost_core.provisioning.status import (
    PHASE_PROGRESS,
    Phase,
    ProvisioningStatus,
    StatusRegistry,
)
from outpost_core.provisioning.tools import DEFAULT_TOOLS, TOOL_REGISTRY, ToolDefinition

__all__ = [
    "DEFAULT_TOOLS",
    "PHASE_PROGRESS",
    "TOOL_REGISTRY",
    "ClientTenantInfrastructure",
    "ConfigBundle",
    "CreateResult",
    "PairingHandshake",
    "PairingOutcome",
    "Phase",
    "ProvisioningJob",
    "ProvisioningOrchestrator",
    "ProvisioningQueue",
    "ProvisioningStatus",
    "StatusRegistry",
    "TenantInfrastructure",
    "ToolConfigurator",
    "ToolDefinition",
    "ToolTarget",
    "to_client_projection",
]
