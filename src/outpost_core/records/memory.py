"""In-memory tenant record store."""

import asyncio
from typing import Any

from outpost_core.provisioning.models import TenantInfrastructure


class MemoryTenantRecordStore:
    """In-memory tenant record store.

    Suitable for development and testing. Data is lost on restart.
    """

    def __init__(self, **kwargs: Any) -> None:
        """Initialize memory record store.

        Args:
            **kwargs: Ignored (for compatibility with other backends)
        """
        self._records: dict[str, dict[str, Any]] = {}
        self._project_index: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def save(self, record: TenantInfrastructure) -> None:
        """Insert or replace a record and its project index entry."""
        data = record.to_dict()
        async with self._lock:
            previous = self._records.get(record.tenant_id)
            if previous and previous.get("project_ref") != record.project_ref:
                self._project_index.pop(previous["project_ref"], None)
            self._records[record.tenant_id] = data
            if record.project_ref:
                self._project_index[record.project_ref] = record.tenant_id

    async def get(self, tenant_id: str) -> TenantInfrastructure | None:
        """Get a tenant's record."""
        async with self._lock:
            data = self._records.get(tenant_id)
        return TenantInfrastructure.from_dict(data) if data else None

    async def get_by_project(self, project_ref: str) -> TenantInfrastructure | None:
        """Get a record by its database project ref."""
        async with self._lock:
            tenant_id = self._project_index.get(project_ref)
            data = self._records.get(tenant_id) if tenant_id else None
        return TenantInfrastructure.from_dict(data) if data else None

    async def delete(self, tenant_id: str) -> None:
        """Delete a record and its index entry."""
        async with self._lock:
            data = self._records.pop(tenant_id, None)
            if data and data.get("project_ref"):
                self._project_index.pop(data["project_ref"], None)

    async def clear(self) -> None:
        """Clear all data. Useful for testing."""
        async with self._lock:
            self._records.clear()
            self._project_index.clear()

    async def close(self) -> None:
        """Nothing to release."""
