"""Protocol interfaces for pluggable backends."""

from outpost_core.protocols.compute import STATUS_ACTIVE, ComputeProvider, ComputeState
from outpost_core.protocols.database_project import DatabaseProjectProvider
from outpost_core.protocols.dns import DnsProvider
from outpost_core.protocols.records import TenantRecordStore
from outpost_core.protocols.remote import RemoteExecutor

__all__ = [
    "STATUS_ACTIVE",
    "ComputeProvider",
    "ComputeState",
    "DatabaseProjectProvider",
    "DnsProvider",
    "RemoteExecutor",
    "TenantRecordStore",
]
