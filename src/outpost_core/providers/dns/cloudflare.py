"""Cloudflare DNS provider.

Records are created unproxied: the host terminates TLS itself with the
wildcard certificate.
"""

from typing import TYPE_CHECKING

import httpx

from outpost_core.exceptions import ConfigError, DnsProviderError
from outpost_core.observability import get_logger
from outpost_core.providers._http import ensure_success

if TYPE_CHECKING:
    from outpost_core.config import Config

logger = get_logger(__name__)


class CloudflareDnsProvider:
    """A-record management in a Cloudflare zone."""

    def __init__(self, config: "Config", client: httpx.AsyncClient) -> None:
        """Initialize the provider.

        Raises:
            ConfigError: If the domain, zone or API token is missing
        """
        if not config.dns.domain:
            raise ConfigError("dns.domain is required")
        if not config.dns.zone_id:
            raise ConfigError("dns.zone_id is required for the cloudflare DNS backend")
        if not config.dns.api_token:
            raise ConfigError("dns.api_token is required for the cloudflare DNS backend")

        self.domain = config.dns.domain
        self.ttl = config.dns.ttl
        self.api_token = config.dns.api_token
        self.client = client
        self.base_url = f"https://api.cloudflare.com/client/v4/zones/{config.dns.zone_id}/dns_records"

    def _headers(self) -> dict[str, str]:
        """Get API request headers."""
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    async def create_record(self, subdomain: str, ip: str) -> str:
        """Create an A record, removing stale ones first."""
        fqdn = f"{subdomain}.{self.domain}"
        logger.info("Creating Cloudflare DNS A record", context={"fqdn": fqdn, "ip": ip})

        for record_id in await self._find_record_ids(fqdn):
            try:
                await self._delete_by_id(record_id)
                logger.info("Removed stale DNS record", context={"record_id": record_id})
            except (httpx.HTTPError, DnsProviderError) as e:
                logger.warning("Could not delete stale DNS record", context={"record_id": record_id}, error=e)

        response = await self.client.post(
            self.base_url,
            headers=self._headers(),
            json={"type": "A", "name": subdomain, "content": ip, "ttl": self.ttl, "proxied": False},
        )
        ensure_success(response, f"create DNS record {fqdn}", DnsProviderError)

        logger.info("DNS record created", context={"fqdn": fqdn})
        return fqdn

    async def delete_record(self, subdomain: str) -> None:
        """Delete all A records for ``subdomain``."""
        fqdn = f"{subdomain}.{self.domain}"
        logger.info("Deleting Cloudflare DNS record", context={"fqdn": fqdn})
        for record_id in await self._find_record_ids(fqdn):
            await self._delete_by_id(record_id)

    async def _delete_by_id(self, record_id: str) -> None:
        response = await self.client.delete(f"{self.base_url}/{record_id}", headers=self._headers())
        if response.status_code != 404:
            ensure_success(response, f"delete DNS record {record_id}", DnsProviderError)

    async def _find_record_ids(self, fqdn: str) -> list[str]:
        # Cloudflare reports record names fully qualified
        response = await self.client.get(
            self.base_url,
            headers=self._headers(),
            params={"type": "A", "name": fqdn},
        )
        if not response.is_success:
            return []
        return [str(r["id"]) for r in response.json().get("result") or [] if "id" in r]
