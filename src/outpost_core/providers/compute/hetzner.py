"""Hetzner Cloud compute provider.

Hetzner server status lifecycle is initializing -> starting -> running;
"running" is mapped to the canonical "active".
"""

from typing import TYPE_CHECKING, Any

import httpx

from outpost_core.exceptions import ComputeProviderError, ConfigError
from outpost_core.observability import get_logger
from outpost_core.protocols.compute import STATUS_ACTIVE, ComputeState
from outpost_core.providers._http import ensure_success
from outpost_core.provisioning.cloud_init import render_bootstrap_user_data

if TYPE_CHECKING:
    from outpost_core.config import Config

logger = get_logger(__name__)

_STATUS_MAP = {"running": STATUS_ACTIVE}


class HetznerComputeProvider:
    """Server lifecycle through the Hetzner Cloud API."""

    base_url = "https://api.hetzner.cloud/v1/servers"

    def __init__(self, config: "Config", client: httpx.AsyncClient) -> None:
        """Initialize the provider.

        Args:
            config: Application configuration
            client: Shared HTTP client

        Raises:
            ConfigError: If the API token or snapshot id is missing
        """
        settings = config.compute.hetzner
        if not settings.api_token:
            raise ConfigError("compute.hetzner.api_token is required")
        if not settings.snapshot_id:
            raise ConfigError("compute.hetzner.snapshot_id is required")

        self.settings = settings
        self.remote_user = config.remote.user
        self.client = client

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.api_token}",
            "Content-Type": "application/json",
        }

    async def create(self, name: str, secret: str) -> int:
        """Create a server and return its id."""
        logger.info(
            "Creating Hetzner server",
            context={"name": name, "type": self.settings.server_type, "location": self.settings.location},
        )

        body: dict[str, Any] = {
            "name": name,
            "server_type": self.settings.server_type,
            "image": self.settings.snapshot_id,
            "location": self.settings.location,
            "user_data": render_bootstrap_user_data(secret, self.remote_user),
        }
        if self.settings.ssh_key:
            body["ssh_keys"] = [self.settings.ssh_key]

        response = await self.client.post(self.base_url, headers=self._headers(), json=body)
        ensure_success(response, "create server", ComputeProviderError)

        server_id = (response.json().get("server") or {}).get("id")
        if server_id is None:
            raise ComputeProviderError("Hetzner did not return a server id")

        logger.info("Hetzner server created", context={"server_id": server_id})
        return int(server_id)

    async def get_state(self, resource_id: int) -> ComputeState:
        """Return the server's canonical status and public IPv4."""
        response = await self.client.get(f"{self.base_url}/{resource_id}", headers=self._headers())
        ensure_success(response, f"get server {resource_id}", ComputeProviderError)

        server = response.json().get("server") or {}
        raw_status = server.get("status") or "unknown"
        ip = ((server.get("public_net") or {}).get("ipv4") or {}).get("ip")
        return ComputeState(status=_STATUS_MAP.get(raw_status, raw_status), ipv4=ip)

    async def delete(self, resource_id: int) -> None:
        """Delete a server."""
        logger.info("Deleting Hetzner server", context={"server_id": resource_id})
        response = await self.client.delete(f"{self.base_url}/{resource_id}", headers=self._headers())
        if response.status_code == 404:
            return
        ensure_success(response, f"delete server {resource_id}", ComputeProviderError)
