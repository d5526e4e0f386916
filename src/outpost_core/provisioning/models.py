"""Tenant infrastructure records."""

from dataclasses import asdict, dataclass, field, fields
from typing import Any

# Fields encrypted by record stores when an encryption key is configured
SECRET_FIELDS = ("remote_access_secret", "gateway_token", "hook_token", "service_credential")


@dataclass
class TenantInfrastructure:
    """Full infrastructure record for a provisioned tenant.

    Holds operator-only data (internal gateway URL, remote-access secret,
    hook token, database service credential). Never return it outside the
    backend; use ``to_client_projection`` instead.
    """

    tenant_id: str
    resource_id: int
    resource_name: str
    gateway_url: str
    internal_gateway_url: str
    gateway_token: str
    hook_token: str
    remote_access_secret: str
    ip_address: str
    project_ref: str
    service_credential: str
    created_at: float
    subdomain: str | None = None
    status: str = "active"
    tls_enabled: bool = False
    configured_tools: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TenantInfrastructure":
        """Create from dictionary."""
        return cls(
            tenant_id=data["tenant_id"],
            resource_id=int(data["resource_id"]),
            resource_name=data["resource_name"],
            gateway_url=data["gateway_url"],
            internal_gateway_url=data["internal_gateway_url"],
            gateway_token=data["gateway_token"],
            hook_token=data.get("hook_token", ""),
            remote_access_secret=data["remote_access_secret"],
            ip_address=data["ip_address"],
            project_ref=data["project_ref"],
            service_credential=data["service_credential"],
            created_at=float(data["created_at"]),
            subdomain=data.get("subdomain"),
            status=data.get("status", "active"),
            tls_enabled=bool(data.get("tls_enabled", False)),
            configured_tools=list(data.get("configured_tools", [])),
        )


@dataclass(frozen=True)
class ClientTenantInfrastructure:
    """Client-safe view of a tenant record.

    Every field here must exist with the same name on
    ``TenantInfrastructure``; the projection copies by name.
    """

    tenant_id: str
    resource_id: int
    resource_name: str
    gateway_url: str
    gateway_token: str
    ip_address: str
    created_at: float
    subdomain: str | None
    status: str
    tls_enabled: bool
    configured_tools: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        data = asdict(self)
        data["configured_tools"] = list(self.configured_tools)
        return data


def to_client_projection(record: TenantInfrastructure) -> ClientTenantInfrastructure:
    """Strip operator-only fields from a tenant record."""
    values = {f.name: getattr(record, f.name) for f in fields(ClientTenantInfrastructure)}
    values["configured_tools"] = tuple(values["configured_tools"])
    return ClientTenantInfrastructure(**values)
