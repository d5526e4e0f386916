"""TenantRecordStore protocol for durable tenant infrastructure records."""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from outpost_core.provisioning.models import TenantInfrastructure


@runtime_checkable
class TenantRecordStore(Protocol):
    """Protocol for tenant record storage.

    ``save`` and ``delete`` cover the record and the project-to-tenant
    index together: either both change or neither does.
    """

    async def save(self, record: "TenantInfrastructure") -> None:
        """Insert or replace a tenant's record and its project index entry."""
        ...

    async def get(self, tenant_id: str) -> "TenantInfrastructure | None":
        """Get a tenant's record."""
        ...

    async def get_by_project(self, project_ref: str) -> "TenantInfrastructure | None":
        """Look up a record through the project-to-tenant index."""
        ...

    async def delete(self, tenant_id: str) -> None:
        """Delete a tenant's record and its index entry. No-op if absent."""
        ...

    async def close(self) -> None:
        """Release any held resources."""
        ...
