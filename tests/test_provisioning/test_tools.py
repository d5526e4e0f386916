"""Tests for the tool registry."""

from outpost_core.provisioning.tools import (
    AUTH_BEARER,
    AUTH_PATH_PREFIX,
    DEFAULT_TOOLS,
    TOOL_REGISTRY,
    get_tool,
)


class TestToolRegistry:
    """Tests for TOOL_REGISTRY."""

    def test_supabase_uses_bearer(self):
        tool = get_tool("supabase")
        assert tool is not None
        assert tool.auth_type == AUTH_BEARER
        assert "{project_ref}" in tool.relay_path

    def test_firecrawl_uses_path_prefix(self):
        tool = get_tool("firecrawl")
        assert tool is not None
        assert tool.auth_type == AUTH_PATH_PREFIX
        assert tool.path_template == "/{key}/v2"

    def test_unknown_tool(self):
        assert get_tool("nope") is None

    def test_defaults_are_registered(self):
        assert all(name in TOOL_REGISTRY for name in DEFAULT_TOOLS)

    def test_names_match_keys(self):
        assert all(tool.name == key for key, tool in TOOL_REGISTRY.items())
