"""DatabaseProjectProvider protocol for managed per-tenant databases."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class DatabaseProjectProvider(Protocol):
    """Protocol for managed database control planes (Supabase)."""

    async def create(self, name: str) -> str:
        """Create an isolated project and return its reference."""
        ...

    async def wait_until_active(self, ref: str) -> None:
        """Block until the project reports healthy, or raise on deadline."""
        ...

    async def get_service_credential(self, ref: str) -> str:
        """Return the project's service-role key."""
        ...

    async def run_sql(self, ref: str, sql: str) -> None:
        """Execute SQL against the project's database."""
        ...

    async def delete(self, ref: str) -> None:
        """Delete the project."""
        ...
