"""Registry of tools the remote relay can route to.

Each entry describes where the relay forwards a tool's traffic and how
it injects that tool's secret. Adding a tool means adding an entry here;
the configurator interprets entries generically.
"""

from dataclasses import dataclass

AUTH_BEARER = "bearer"
AUTH_PATH_PREFIX = "path-prefix"


@dataclass(frozen=True)
class ToolDefinition:
    """Declarative description of a relay-routed tool.

    Attributes:
        name: Tool name used as the routing key
        upstream: Upstream base URL
        auth_type: ``bearer`` or ``path-prefix``
        env_var: Environment variable holding the tool's secret
        relay_path: Path on the local relay; may contain ``{project_ref}``
        path_template: For ``path-prefix`` auth, the prefix with ``{key}``
    """

    name: str
    upstream: str
    auth_type: str
    env_var: str
    relay_path: str
    path_template: str | None = None


TOOL_REGISTRY: dict[str, ToolDefinition] = {
    "supabase": ToolDefinition(
        name="supabase",
        upstream="https://mcp.supabase.com",
        auth_type=AUTH_BEARER,
        env_var="SUPABASE_ACCESS_TOKEN",
        relay_path="/supabase/mcp?project_ref={project_ref}",
    ),
    "firecrawl": ToolDefinition(
        name="firecrawl",
        upstream="https://mcp.firecrawl.dev",
        auth_type=AUTH_PATH_PREFIX,
        env_var="FIRECRAWL_API_KEY",
        relay_path="/firecrawl/mcp",
        path_template="/{key}/v2",
    ),
}

DEFAULT_TOOLS: tuple[str, ...] = ("supabase",)


def get_tool(name: str) -> ToolDefinition | None:
    """Look up a tool definition by name."""
    return TOOL_REGISTRY.get(name)
