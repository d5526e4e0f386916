"""External API providers.

Factory functions pick the backend named in configuration.
"""

from typing import TYPE_CHECKING

import httpx

from outpost_core.exceptions import ConfigError
from outpost_core.protocols import ComputeProvider, DatabaseProjectProvider, DnsProvider

if TYPE_CHECKING:
    from outpost_core.config import Config


def get_compute_provider(config: "Config", client: httpx.AsyncClient) -> ComputeProvider:
    """Get the compute provider selected by ``compute.backend``.

    Raises:
        ConfigError: If the backend is not supported
    """
    backend = config.compute.backend

    if backend == "digitalocean":
        from outpost_core.providers.compute.digitalocean import DigitalOceanComputeProvider

        return DigitalOceanComputeProvider(config, client)
    elif backend == "hetzner":
        from outpost_core.providers.compute.hetzner import HetznerComputeProvider

        return HetznerComputeProvider(config, client)
    else:
        raise ConfigError(f"Unsupported compute backend: {backend}")


def get_dns_provider(config: "Config", client: httpx.AsyncClient) -> DnsProvider:
    """Get the DNS provider selected by ``dns.backend``.

    Raises:
        ConfigError: If the backend is not supported
    """
    backend = config.dns.backend

    if backend == "digitalocean":
        from outpost_core.providers.dns.digitalocean import DigitalOceanDnsProvider

        return DigitalOceanDnsProvider(config, client)
    elif backend == "hetzner":
        from outpost_core.providers.dns.hetzner import HetznerDnsProvider

        return HetznerDnsProvider(config, client)
    elif backend == "cloudflare":
        from outpost_core.providers.dns.cloudflare import CloudflareDnsProvider

        return CloudflareDnsProvider(config, client)
    else:
        raise ConfigError(f"Unsupported DNS backend: {backend}")


def get_database_project_provider(
    config: "Config", client: httpx.AsyncClient
) -> DatabaseProjectProvider:
    """Get the database project provider (Supabase)."""
    from outpost_core.providers.database.supabase import SupabaseProjectProvider

    return SupabaseProjectProvider(config, client)


__all__ = [
    "get_compute_provider",
    "get_database_project_provider",
    "get_dns_provider",
]
