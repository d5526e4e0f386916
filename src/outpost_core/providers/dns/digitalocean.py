"""DigitalOcean DNS provider."""

from typing import TYPE_CHECKING

import httpx

from outpost_core.exceptions import ConfigError, DnsProviderError
from outpost_core.observability import get_logger
from outpost_core.providers._http import ensure_success

if TYPE_CHECKING:
    from outpost_core.config import Config

logger = get_logger(__name__)


class DigitalOceanDnsProvider:
    """A-record management for a domain hosted in DigitalOcean DNS."""

    def __init__(self, config: "Config", client: httpx.AsyncClient) -> None:
        """Initialize the provider.

        The DNS token falls back to the compute token, since both live on
        the same DigitalOcean account.

        Raises:
            ConfigError: If the domain or API token is missing
        """
        token = config.dns.api_token or config.compute.digitalocean.api_token
        if not config.dns.domain:
            raise ConfigError("dns.domain is required")
        if not token:
            raise ConfigError("dns.api_token is required for the digitalocean DNS backend")

        self.domain = config.dns.domain
        self.ttl = config.dns.ttl
        self.api_token = token
        self.client = client
        self.base_url = f"https://api.digitalocean.com/v2/domains/{self.domain}/records"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_token}"}

    async def create_record(self, subdomain: str, ip: str) -> str:
        """Create an A record, removing stale ones first."""
        fqdn = f"{subdomain}.{self.domain}"
        logger.info("Creating DNS A record", context={"fqdn": fqdn, "ip": ip})

        for record_id in await self._find_record_ids(subdomain):
            try:
                await self._delete_by_id(record_id)
                logger.info("Removed stale DNS record", context={"record_id": record_id})
            except (httpx.HTTPError, DnsProviderError) as e:
                logger.warning("Could not delete stale DNS record", context={"record_id": record_id}, error=e)

        response = await self.client.post(
            self.base_url,
            headers=self._headers(),
            json={"type": "A", "name": subdomain, "data": ip, "ttl": self.ttl},
        )
        ensure_success(response, f"create DNS record {fqdn}", DnsProviderError)

        logger.info("DNS record created", context={"fqdn": fqdn})
        return fqdn

    async def delete_record(self, subdomain: str) -> None:
        """Delete all A records for ``subdomain``."""
        logger.info("Deleting DNS record", context={"fqdn": f"{subdomain}.{self.domain}"})
        for record_id in await self._find_record_ids(subdomain):
            await self._delete_by_id(record_id)

    async def _delete_by_id(self, record_id: str) -> None:
        response = await self.client.delete(f"{self.base_url}/{record_id}", headers=self._headers())
        if response.status_code != 404:
            ensure_success(response, f"delete DNS record {record_id}", DnsProviderError)

    async def _find_record_ids(self, subdomain: str) -> list[str]:
        response = await self.client.get(
            self.base_url,
            headers=self._headers(),
            params={"type": "A", "per_page": 200},
        )
        if not response.is_success:
            return []
        records = response.json().get("domain_records") or []
        return [str(r["id"]) for r in records if r.get("name") == subdomain and "id" in r]
