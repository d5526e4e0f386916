"""Provisioning phases and the in-memory status registry.

Entries live only for the lifetime of the process. A restart loses
in-flight runs; there is no durable checkpointing.
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from outpost_core.exceptions import ProvisioningError


class Phase(str, Enum):
    """Provisioning phases, in run order."""

    CREATING = "creating"
    WAITING_ACTIVE = "waiting_active"
    WAITING_SSH = "waiting_ssh"
    CONFIGURING = "configuring"
    DNS = "dns"
    VERIFYING = "verifying"
    NGINX = "nginx"
    COMPLETE = "complete"
    FAILED = "failed"


PHASE_PROGRESS: dict[Phase, float] = {
    Phase.CREATING: 0.0,
    Phase.WAITING_ACTIVE: 0.125,
    Phase.WAITING_SSH: 0.25,
    Phase.CONFIGURING: 0.55,
    Phase.DNS: 0.65,
    Phase.VERIFYING: 0.75,
    Phase.NGINX: 0.875,
    Phase.COMPLETE: 1.0,
    Phase.FAILED: 0.0,
}

TERMINAL_PHASES = frozenset({Phase.COMPLETE, Phase.FAILED})


@dataclass(frozen=True)
class ProvisioningStatus:
    """Snapshot of one resource's provisioning progress.

    Snapshots are immutable; the registry swaps in a new one on every
    transition, so readers never observe a half-applied update.
    """

    resource_id: int
    name: str
    phase: Phase = Phase.CREATING
    message: str = ""
    ip_address: str | None = None
    subdomain: str | None = None
    error: str | None = None
    started_at: float = field(default_factory=time.time)
    completed_at: float | None = None

    @property
    def progress(self) -> float:
        return PHASE_PROGRESS[self.phase]

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for status polling responses."""
        return {
            "resource_id": self.resource_id,
            "name": self.name,
            "phase": self.phase.value,
            "progress": self.progress,
            "message": self.message,
            "ip_address": self.ip_address,
            "subdomain": self.subdomain,
            "error": self.error,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }


class StatusRegistry:
    """Status snapshots keyed by resource id.

    Only the orchestrator run owning a resource id writes its entry.
    All mutation happens on the event loop thread, so plain dict
    replacement is enough.
    """

    def __init__(self) -> None:
        self._entries: dict[int, ProvisioningStatus] = {}

    def create(self, resource_id: int, name: str, message: str = "") -> ProvisioningStatus:
        """Register a new resource at phase CREATING."""
        status = ProvisioningStatus(resource_id=resource_id, name=name, message=message)
        self._entries[resource_id] = status
        return status

    def get(self, resource_id: int) -> ProvisioningStatus | None:
        """Get the current snapshot for a resource."""
        return self._entries.get(resource_id)

    def transition(
        self,
        resource_id: int,
        phase: Phase,
        message: str,
        **changes: Any,
    ) -> ProvisioningStatus:
        """Move a resource to ``phase``.

        Args:
            resource_id: Resource identifier
            phase: Target phase
            message: Human-readable status message
            **changes: Other snapshot fields to update (ip_address, subdomain, error)

        Returns:
            The new snapshot

        Raises:
            ProvisioningError: If the resource is unknown, already terminal,
                or the move would lower progress
        """
        current = self._entries.get(resource_id)
        if current is None:
            raise ProvisioningError(f"No provisioning status for resource {resource_id}")
        if current.is_terminal:
            raise ProvisioningError(
                f"Resource {resource_id} is already {current.phase.value}"
            )
        if phase is not Phase.FAILED and PHASE_PROGRESS[phase] < current.progress:
            raise ProvisioningError(
                f"Phase {phase.value} would move resource {resource_id} backwards "
                f"from {current.phase.value}"
            )

        if phase in TERMINAL_PHASES:
            changes.setdefault("completed_at", time.time())

        updated = replace(current, phase=phase, message=message, **changes)
        self._entries[resource_id] = updated
        return updated

    def fail(self, resource_id: int, message: str, error: str) -> ProvisioningStatus:
        """Mark a resource FAILED."""
        return self.transition(resource_id, Phase.FAILED, message, error=error)

    def record_failure(
        self,
        resource_id: int,
        name: str,
        message: str,
        error: str,
    ) -> ProvisioningStatus:
        """Mark a resource FAILED whatever its current entry holds.

        Unlike ``fail`` this never raises: a missing entry (removed by a
        concurrent teardown) is recreated as FAILED, and a terminal entry
        is overwritten.
        """
        current = self._entries.get(resource_id)
        if current is not None and not current.is_terminal:
            return self.fail(resource_id, message, error)

        base = current or ProvisioningStatus(resource_id=resource_id, name=name)
        updated = replace(
            base,
            phase=Phase.FAILED,
            message=message,
            error=error,
            completed_at=time.time(),
        )
        self._entries[resource_id] = updated
        return updated

    def remove(self, resource_id: int) -> None:
        """Forget a resource. No-op if absent."""
        self._entries.pop(resource_id, None)

    def __contains__(self, resource_id: object) -> bool:
        return resource_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
