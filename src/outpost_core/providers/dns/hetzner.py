"""Hetzner DNS provider.

The domain must already exist as a zone in the Hetzner DNS account. The
DNS API token is separate from the Hetzner Cloud token.
"""

from typing import TYPE_CHECKING

import httpx

from outpost_core.exceptions import ConfigError, DnsProviderError
from outpost_core.observability import get_logger
from outpost_core.providers._http import ensure_success

if TYPE_CHECKING:
    from outpost_core.config import Config

logger = get_logger(__name__)


class HetznerDnsProvider:
    """A-record management through dns.hetzner.com."""

    base_url = "https://dns.hetzner.com/api/v1"

    def __init__(self, config: "Config", client: httpx.AsyncClient) -> None:
        """Initialize the provider.

        Raises:
            ConfigError: If the domain or API token is missing
        """
        if not config.dns.domain:
            raise ConfigError("dns.domain is required")
        if not config.dns.api_token:
            raise ConfigError("dns.api_token is required for the hetzner DNS backend")

        self.domain = config.dns.domain
        self.ttl = config.dns.ttl
        self.api_token = config.dns.api_token
        self.client = client

    def _headers(self) -> dict[str, str]:
        return {"Auth-API-Token": self.api_token}

    async def create_record(self, subdomain: str, ip: str) -> str:
        """Create an A record, removing stale ones first."""
        fqdn = f"{subdomain}.{self.domain}"
        logger.info("Creating Hetzner DNS A record", context={"fqdn": fqdn, "ip": ip})

        zone_id = await self._resolve_zone_id()
        for record_id in await self._find_record_ids(subdomain, zone_id):
            try:
                await self._delete_by_id(record_id)
                logger.info("Removed stale DNS record", context={"record_id": record_id})
            except (httpx.HTTPError, DnsProviderError) as e:
                logger.warning("Could not delete stale DNS record", context={"record_id": record_id}, error=e)

        response = await self.client.post(
            f"{self.base_url}/records",
            headers=self._headers(),
            json={"zone_id": zone_id, "type": "A", "name": subdomain, "value": ip, "ttl": self.ttl},
        )
        ensure_success(response, f"create DNS record {fqdn}", DnsProviderError)

        logger.info("DNS record created", context={"fqdn": fqdn})
        return fqdn

    async def delete_record(self, subdomain: str) -> None:
        """Delete all A records for ``subdomain``."""
        logger.info("Deleting Hetzner DNS record", context={"fqdn": f"{subdomain}.{self.domain}"})
        zone_id = await self._resolve_zone_id()
        for record_id in await self._find_record_ids(subdomain, zone_id):
            await self._delete_by_id(record_id)

    async def _resolve_zone_id(self) -> str:
        response = await self.client.get(
            f"{self.base_url}/zones",
            headers=self._headers(),
            params={"name": self.domain},
        )
        ensure_success(response, "list DNS zones", DnsProviderError)

        zones = response.json().get("zones") or []
        if not zones or "id" not in zones[0]:
            raise DnsProviderError(f"Zone '{self.domain}' not found in Hetzner DNS")
        return str(zones[0]["id"])

    async def _delete_by_id(self, record_id: str) -> None:
        response = await self.client.delete(f"{self.base_url}/records/{record_id}", headers=self._headers())
        if response.status_code != 404:
            ensure_success(response, f"delete DNS record {record_id}", DnsProviderError)

    async def _find_record_ids(self, subdomain: str, zone_id: str) -> list[str]:
        response = await self.client.get(
            f"{self.base_url}/records",
            headers=self._headers(),
            params={"zone_id": zone_id},
        )
        if not response.is_success:
            return []
        records = response.json().get("records") or []
        return [
            str(r["id"])
            for r in records
            if r.get("type") == "A" and r.get("name") == subdomain and "id" in r
        ]
