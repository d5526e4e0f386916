"""Tenant record stores.

Provides factory function to get the appropriate store based on configuration.
"""

from typing import TYPE_CHECKING

from outpost_core.exceptions import ConfigError
from outpost_core.protocols import TenantRecordStore
from outpost_core.records.memory import MemoryTenantRecordStore

if TYPE_CHECKING:
    from outpost_core.config import Config


def get_record_store(config: "Config") -> TenantRecordStore:
    """Get the tenant record store selected by ``records.backend``.

    Raises:
        ConfigError: If the backend is not supported
    """
    backend = config.records.backend

    if backend == "memory":
        return MemoryTenantRecordStore()
    elif backend == "sqlite":
        from outpost_core.records.sqlite import SQLiteTenantRecordStore

        return SQLiteTenantRecordStore(
            path=config.records.path,
            encryption_key=config.records.encryption_key,
        )
    else:
        raise ConfigError(f"Unsupported record store backend: {backend}")


__all__ = ["MemoryTenantRecordStore", "get_record_store"]
