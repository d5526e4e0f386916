"""ComputeProvider protocol for virtual machine backends."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

# Canonical status every backend maps its "ready" state to
STATUS_ACTIVE = "active"


@dataclass(frozen=True)
class ComputeState:
    """Provider-agnostic view of a compute resource."""

    status: str
    ipv4: str | None = None

    @property
    def is_ready(self) -> bool:
        """True once the resource is active and has a public address."""
        return self.status == STATUS_ACTIVE and bool(self.ipv4)


@runtime_checkable
class ComputeProvider(Protocol):
    """Protocol for compute backends (DigitalOcean, Hetzner)."""

    async def create(self, name: str, secret: str) -> int:
        """Create a machine whose remote user accepts ``secret``. Returns its id."""
        ...

    async def get_state(self, resource_id: int) -> ComputeState:
        """Return the canonical state of a machine."""
        ...

    async def delete(self, resource_id: int) -> None:
        """Permanently delete a machine. No-op if already gone."""
        ...
