"""Supabase management API provider for per-tenant database projects."""

from typing import TYPE_CHECKING

import httpx

from outpost_core.exceptions import ConfigError, DatabaseProjectError
from outpost_core.observability import get_logger
from outpost_core.providers._http import ensure_success
from outpost_core.utils.crypto import generate_db_password
from outpost_core.utils.polling import poll_until

if TYPE_CHECKING:
    from outpost_core.config import Config

logger = get_logger(__name__)

STATUS_HEALTHY = "ACTIVE_HEALTHY"
SERVICE_ROLE_KEY_NAME = "service_role"


class SupabaseProjectProvider:
    """Creates and manages isolated Supabase projects.

    Every tenant gets its own project under the configured organization.
    SQL is executed through the management API's query endpoint, so no
    direct database connection is needed.
    """

    base_url = "https://api.supabase.com/v1"

    def __init__(self, config: "Config", client: httpx.AsyncClient) -> None:
        """Initialize the provider.

        Args:
            config: Application configuration
            client: Shared HTTP client

        Raises:
            ConfigError: If the management token or organization is missing
        """
        settings = config.database
        if not settings.management_token:
            raise ConfigError("database.management_token is required")
        if not settings.organization_id:
            raise ConfigError("database.organization_id is required")

        self.settings = settings
        self.timeouts = config.timeouts
        self.client = client

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.settings.management_token}"}

    async def create(self, name: str) -> str:
        """Create a project and return its ref."""
        logger.info("Creating database project", context={"name": name})

        response = await self.client.post(
            f"{self.base_url}/projects",
            headers=self._headers(),
            json={
                "name": name,
                "organization_id": self.settings.organization_id,
                "region": self.settings.region,
                "plan": self.settings.plan,
                "db_pass": generate_db_password(),
            },
        )
        ensure_success(response, f"create project {name}", DatabaseProjectError)

        ref = response.json().get("id")
        if not ref:
            raise DatabaseProjectError("Project creation did not return an id")

        logger.info("Database project created", context={"project_ref": ref})
        return str(ref)

    async def wait_until_active(self, ref: str) -> None:
        """Poll the project until it reports ACTIVE_HEALTHY.

        Raises:
            DeadlineExceededError: If the project is not healthy in time
        """

        async def probe() -> bool | None:
            response = await self.client.get(f"{self.base_url}/projects/{ref}", headers=self._headers())
            ensure_success(response, f"get project {ref}", DatabaseProjectError)
            status = response.json().get("status")
            logger.debug("Database project status", context={"project_ref": ref, "status": status})
            return True if status == STATUS_HEALTHY else None

        await poll_until(
            probe,
            what=f"database project {ref}",
            timeout=self.timeouts.project_ready_timeout,
            interval=self.timeouts.project_poll_interval,
        )
        logger.info("Database project is healthy", context={"project_ref": ref})

    async def get_service_credential(self, ref: str) -> str:
        """Return the project's service_role API key."""
        response = await self.client.get(
            f"{self.base_url}/projects/{ref}/api-keys",
            headers=self._headers(),
        )
        ensure_success(response, f"list API keys for {ref}", DatabaseProjectError)

        for key in response.json() or []:
            if key.get("name") == SERVICE_ROLE_KEY_NAME and key.get("api_key"):
                return str(key["api_key"])
        raise DatabaseProjectError(f"service_role key not found for project {ref}")

    async def run_sql(self, ref: str, sql: str) -> None:
        """Execute SQL through the management API."""
        logger.info("Running SQL", context={"project_ref": ref, "chars": len(sql)})
        response = await self.client.post(
            f"{self.base_url}/projects/{ref}/database/query",
            headers=self._headers(),
            json={"query": sql},
        )
        ensure_success(response, f"run SQL on {ref}", DatabaseProjectError)

    async def delete(self, ref: str) -> None:
        """Delete a project. No-op if it no longer exists."""
        logger.info("Deleting database project", context={"project_ref": ref})
        response = await self.client.delete(f"{self.base_url}/projects/{ref}", headers=self._headers())
        if response.status_code == 404:
            return
        ensure_success(response, f"delete project {ref}", DatabaseProjectError)
