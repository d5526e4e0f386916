"""Credential and tool configuration for the remote relay.

Renders three files from the tool registry and uploads them to the host:

- ``mcp.env``: ``KEY=VALUE`` secrets for the relay (root-owned, 0600)
- ``mcp-routes.json``: tool name to upstream and auth strategy
- client config: tool catalog pointing at the local relay

Always pass the full desired tool set. Rendering is deterministic, so
repeated runs with the same inputs upload byte-identical files.
"""

import base64
import json
import os
import posixpath
import re
import shlex
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from outpost_core.exceptions import CommandFailedError
from outpost_core.observability import get_logger
from outpost_core.protocols.remote import RemoteExecutor
from outpost_core.provisioning.tools import AUTH_PATH_PREFIX, ToolDefinition, get_tool

if TYPE_CHECKING:
    from outpost_core.config import Config

logger = get_logger(__name__)

ENV_FILE_NAME = "mcp.env"
ROUTES_FILE_NAME = "mcp-routes.json"

# systemctl exit status for an unknown unit
SYSTEMD_UNIT_NOT_FOUND = 5
_UNIT_NOT_FOUND_RE = re.compile(r"\bUnit \S+ not found", re.IGNORECASE)


@dataclass(frozen=True)
class ToolTarget:
    """The host and tenant values a bundle is rendered for."""

    host: str
    secret: str
    project_ref: str
    gateway_token: str


@dataclass(frozen=True)
class ConfigBundle:
    """Rendered file contents, ready to upload."""

    env_file: str
    routes: str
    client_config: str
    tools: tuple[str, ...]


def _dumps(data: Any) -> str:
    return json.dumps(data, sort_keys=True, indent=2) + "\n"


def _is_unit_not_found(error: CommandFailedError) -> bool:
    return (
        error.exit_status == SYSTEMD_UNIT_NOT_FOUND
        or _UNIT_NOT_FOUND_RE.search(error.stderr) is not None
    )


class ToolConfigurator:
    """Renders and uploads the relay configuration bundle."""

    def __init__(
        self,
        config: "Config",
        executor: RemoteExecutor,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the configurator.

        Args:
            config: Application configuration
            executor: Remote command executor
            environ: Source for tool secrets (defaults to ``os.environ``)
        """
        self.remote = config.remote
        self.management_token = config.database.management_token or ""
        self.aws_region = config.tools.aws_region
        self.executor = executor
        self.environ = environ if environ is not None else os.environ

    @property
    def env_path(self) -> str:
        return posixpath.join(self.remote.bundle_dir, ENV_FILE_NAME)

    @property
    def routes_path(self) -> str:
        return posixpath.join(self.remote.bundle_dir, ROUTES_FILE_NAME)

    def resolve_tools(self, tool_names: Iterable[str]) -> list[ToolDefinition]:
        """Map names to registry entries, skipping unknown and repeated names."""
        resolved: list[ToolDefinition] = []
        seen: set[str] = set()
        for name in tool_names:
            if name in seen:
                continue
            seen.add(name)
            tool = get_tool(name)
            if tool is None:
                logger.warning("Unknown tool, skipping", context={"tool": name})
                continue
            resolved.append(tool)
        return resolved

    def build_bundle(self, target: ToolTarget, tool_names: Iterable[str]) -> ConfigBundle:
        """Render the bundle for ``tool_names``."""
        tools = self.resolve_tools(tool_names)

        env: dict[str, str] = {
            "SUPABASE_PROJECT_REF": target.project_ref,
            "SUPABASE_ACCESS_TOKEN": self.management_token,
            "AWS_ACCESS_KEY_ID": self.environ.get("AWS_ACCESS_KEY_ID", ""),
            "AWS_SECRET_ACCESS_KEY": self.environ.get("AWS_SECRET_ACCESS_KEY", ""),
            "AWS_REGION": self.environ.get("AWS_REGION") or self.aws_region,
            "OPENCLAW_GATEWAY_TOKEN": target.gateway_token,
        }
        for tool in tools:
            if tool.env_var not in env:
                env[tool.env_var] = self.environ.get(tool.env_var, "")

        routes: dict[str, Any] = {}
        catalog: dict[str, Any] = {}
        for tool in tools:
            auth: dict[str, str] = {"type": tool.auth_type, "envVar": tool.env_var}
            if tool.auth_type == AUTH_PATH_PREFIX and tool.path_template:
                auth["template"] = tool.path_template
            routes[tool.name] = {"upstream": tool.upstream, "auth": auth}

            path = tool.relay_path.format(project_ref=target.project_ref)
            catalog[tool.name] = {"url": f"http://127.0.0.1:{self.remote.relay_port}{path}"}

        return ConfigBundle(
            env_file="".join(f"{key}={value}\n" for key, value in env.items()),
            routes=_dumps(routes),
            client_config=_dumps({"tools": catalog}),
            tools=tuple(tool.name for tool in tools),
        )

    async def configure_tools(
        self,
        target: ToolTarget,
        tool_names: Iterable[str],
        *,
        bring_up: bool = False,
    ) -> list[str]:
        """Upload the bundle for ``tool_names`` and restart the tool client.

        Args:
            target: Host and tenant values
            tool_names: Full desired tool set
            bring_up: True during initial provisioning, when the tool client
                service may not exist yet; a "unit not found" restart
                failure is then treated as success

        Returns:
            Names of the tools actually configured
        """
        bundle = self.build_bundle(target, tool_names)

        await self._upload_root_file(target, self.env_path, bundle.env_file)
        await self._upload_root_file(target, self.routes_path, bundle.routes)
        await self._upload_user_file(target, self.remote.client_config_path, bundle.client_config)

        try:
            await self.executor.run(
                target.host,
                target.secret,
                f"sudo systemctl restart {self.remote.tool_client_service}",
            )
        except CommandFailedError as e:
            if not (bring_up and _is_unit_not_found(e)):
                raise
            logger.info(
                "Tool client service not installed yet, skipping restart",
                context={"service": self.remote.tool_client_service},
            )

        logger.info("Tools configured", context={"tools": list(bundle.tools)})
        return list(bundle.tools)

    async def _upload_root_file(self, target: ToolTarget, path: str, content: str) -> None:
        encoded = base64.b64encode(content.encode()).decode()
        quoted = shlex.quote(path)
        directory = shlex.quote(posixpath.dirname(path))
        command = (
            f"sudo mkdir -p {directory} && "
            f"echo {encoded} | base64 -d | sudo tee {quoted} >/dev/null && "
            f"sudo chmod 600 {quoted} && sudo chown root:root {quoted}"
        )
        await self.executor.run(target.host, target.secret, command)

    async def _upload_user_file(self, target: ToolTarget, path: str, content: str) -> None:
        encoded = base64.b64encode(content.encode()).decode()
        quoted = shlex.quote(path)
        directory = shlex.quote(posixpath.dirname(path))
        command = f"mkdir -p {directory} && echo {encoded} | base64 -d > {quoted}"
        await self.executor.run(target.host, target.secret, command)
