"""DigitalOcean compute provider.

Creates droplets from a base snapshot with bootstrap cloud-init.
DigitalOcean already reports ready droplets as "active", which is the
canonical status, so no mapping is needed.
"""

from typing import TYPE_CHECKING, Any

import httpx

from outpost_core.exceptions import ComputeProviderError, ConfigError
from outpost_core.observability import get_logger
from outpost_core.protocols.compute import ComputeState
from outpost_core.providers._http import ensure_success
from outpost_core.provisioning.cloud_init import render_bootstrap_user_data

if TYPE_CHECKING:
    from outpost_core.config import Config

logger = get_logger(__name__)


class DigitalOceanComputeProvider:
    """Droplet lifecycle through the DigitalOcean v2 API."""

    base_url = "https://api.digitalocean.com/v2/droplets"

    def __init__(self, config: "Config", client: httpx.AsyncClient) -> None:
        """Initialize the provider.

        Args:
            config: Application configuration
            client: Shared HTTP client

        Raises:
            ConfigError: If the API token is missing
        """
        settings = config.compute.digitalocean
        if not settings.api_token:
            raise ConfigError("compute.digitalocean.api_token is required")

        self.settings = settings
        self.remote_user = config.remote.user
        self.client = client

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.api_token}",
            "Content-Type": "application/json",
        }

    async def create(self, name: str, secret: str) -> int:
        """Create a droplet and return its id."""
        logger.info(
            "Creating droplet",
            context={"name": name, "region": self.settings.region, "size": self.settings.size},
        )

        body: dict[str, Any] = {
            "name": name,
            "size": self.settings.size,
            "region": self.settings.region,
            "image": self.settings.snapshot_id,
            "monitoring": True,
            "user_data": render_bootstrap_user_data(secret, self.remote_user),
        }
        if self.settings.vpc_uuid:
            body["vpc_uuid"] = self.settings.vpc_uuid
        if self.settings.ssh_keys:
            body["ssh_keys"] = self.settings.ssh_keys

        response = await self.client.post(self.base_url, headers=self._headers(), json=body)
        ensure_success(response, "create droplet", ComputeProviderError)

        droplet_id = (response.json().get("droplet") or {}).get("id")
        if droplet_id is None:
            raise ComputeProviderError("DigitalOcean did not return a droplet id")

        logger.info("Droplet created", context={"droplet_id": droplet_id})
        return int(droplet_id)

    async def get_state(self, resource_id: int) -> ComputeState:
        """Return the droplet's status and public IPv4."""
        response = await self.client.get(f"{self.base_url}/{resource_id}", headers=self._headers())
        ensure_success(response, f"get droplet {resource_id}", ComputeProviderError)

        droplet = response.json().get("droplet") or {}
        networks = (droplet.get("networks") or {}).get("v4") or []
        ip = next(
            (n.get("ip_address") for n in networks if n.get("type") == "public"),
            None,
        )
        return ComputeState(status=droplet.get("status") or "unknown", ipv4=ip)

    async def delete(self, resource_id: int) -> None:
        """Delete a droplet."""
        logger.info("Deleting droplet", context={"droplet_id": resource_id})
        response = await self.client.delete(f"{self.base_url}/{resource_id}", headers=self._headers())
        if response.status_code == 404:
            return
        ensure_success(response, f"delete droplet {resource_id}", ComputeProviderError)
