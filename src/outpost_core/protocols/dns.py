"""DnsProvider protocol for A-record management."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class DnsProvider(Protocol):
    """Protocol for DNS backends (DigitalOcean, Hetzner, Cloudflare)."""

    domain: str

    async def create_record(self, subdomain: str, ip: str) -> str:
        """Point ``subdomain`` at ``ip``, replacing stale A records.

        Returns the fully-qualified domain name.
        """
        ...

    async def delete_record(self, subdomain: str) -> None:
        """Delete every A record for ``subdomain``."""
        ...
