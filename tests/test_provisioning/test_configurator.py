"""Tests for relay tool configuration."""

import base64
import json
import re

import pytest

from outpost_core.exceptions import CommandFailedError
from outpost_core.provisioning.configurator import ToolConfigurator, ToolTarget

from fakes import FakeRemoteExecutor

ENVIRON = {
    "AWS_ACCESS_KEY_ID": "AKIA-TEST",
    "AWS_SECRET_ACCESS_KEY": "aws-secret",
    "FIRECRAWL_API_KEY": "fc-key",
}


@pytest.fixture
def target() -> ToolTarget:
    return ToolTarget(host="203.0.113.5", secret="pw", project_ref="proj-abc", gateway_token="gw")


@pytest.fixture
def configurator(config, executor) -> ToolConfigurator:
    return ToolConfigurator(config, executor, environ=ENVIRON)


def uploaded(command: str) -> str:
    """Decode the file content embedded in an upload command."""
    encoded = re.search(r"echo ([A-Za-z0-9+/=]+) \| base64 -d", command).group(1)
    return base64.b64decode(encoded).decode()


class TestBuildBundle:
    """Tests for bundle rendering."""

    def test_env_file(self, configurator, target):
        bundle = configurator.build_bundle(target, ["supabase"])
        lines = bundle.env_file.splitlines()

        assert "SUPABASE_PROJECT_REF=proj-abc" in lines
        assert "SUPABASE_ACCESS_TOKEN=sbp-test-token" in lines
        assert "AWS_ACCESS_KEY_ID=AKIA-TEST" in lines
        assert "AWS_REGION=us-east-1" in lines
        assert "OPENCLAW_GATEWAY_TOKEN=gw" in lines
        assert not any(line.startswith("FIRECRAWL_API_KEY") for line in lines)

    def test_extra_tool_env_var(self, configurator, target):
        bundle = configurator.build_bundle(target, ["supabase", "firecrawl"])
        assert "FIRECRAWL_API_KEY=fc-key" in bundle.env_file.splitlines()

    def test_routes(self, configurator, target):
        routes = json.loads(configurator.build_bundle(target, ["supabase", "firecrawl"]).routes)

        assert routes["supabase"] == {
            "upstream": "https://mcp.supabase.com",
            "auth": {"type": "bearer", "envVar": "SUPABASE_ACCESS_TOKEN"},
        }
        assert routes["firecrawl"]["auth"] == {
            "type": "path-prefix",
            "envVar": "FIRECRAWL_API_KEY",
            "template": "/{key}/v2",
        }

    def test_client_config_points_at_relay(self, configurator, target):
        catalog = json.loads(configurator.build_bundle(target, ["supabase"]).client_config)
        assert catalog == {
            "tools": {"supabase": {"url": "http://127.0.0.1:18790/supabase/mcp?project_ref=proj-abc"}}
        }

    def test_unknown_and_repeated_tools_skipped(self, configurator, target):
        bundle = configurator.build_bundle(target, ["supabase", "nope", "supabase"])
        assert bundle.tools == ("supabase",)

    def test_rendering_is_deterministic(self, configurator, target):
        assert configurator.build_bundle(target, ["firecrawl", "supabase"]) == \
            configurator.build_bundle(target, ["firecrawl", "supabase"])


class TestConfigureTools:
    """Tests for uploading the bundle."""

    @pytest.mark.asyncio
    async def test_uploads_three_files_then_restarts(self, configurator, executor, target):
        configured = await configurator.configure_tools(target, ["supabase"])

        assert configured == ["supabase"]
        assert len(executor.commands) == 4
        env_cmd, routes_cmd, client_cmd, restart = executor.commands

        assert "/etc/outpost/mcp.env" in env_cmd
        assert "sudo chmod 600 /etc/outpost/mcp.env" in env_cmd
        assert "sudo chown root:root" in env_cmd
        assert "/etc/outpost/mcp-routes.json" in routes_cmd
        assert "/home/openclaw/.mcporter/mcporter.json" in client_cmd
        assert "sudo" not in client_cmd
        assert restart == "sudo systemctl restart mcporter"

        assert "OPENCLAW_GATEWAY_TOKEN=gw" in uploaded(env_cmd)
        assert json.loads(uploaded(client_cmd))["tools"].keys() == {"supabase"}

    @pytest.mark.asyncio
    async def test_secrets_not_in_shell_text(self, configurator, executor, target):
        await configurator.configure_tools(target, ["supabase", "firecrawl"])
        joined = "\n".join(executor.commands)
        assert "aws-secret" not in joined
        assert "fc-key" not in joined

    @pytest.mark.asyncio
    async def test_idempotent(self, configurator, executor, target):
        await configurator.configure_tools(target, ["supabase"])
        first = list(executor.commands)
        executor.commands.clear()

        await configurator.configure_tools(target, ["supabase"])

        assert executor.commands == first

    @pytest.mark.asyncio
    async def test_bring_up_tolerates_missing_unit(self, config, target):
        executor = FakeRemoteExecutor(failures={
            "systemctl restart": CommandFailedError(5, "Unit mcporter.service not found."),
        })
        configurator = ToolConfigurator(config, executor, environ=ENVIRON)

        assert await configurator.configure_tools(target, ["supabase"], bring_up=True) == ["supabase"]

    @pytest.mark.asyncio
    async def test_missing_unit_fatal_on_update(self, config, target):
        executor = FakeRemoteExecutor(failures={
            "systemctl restart": CommandFailedError(5, "Unit mcporter.service not found."),
        })
        configurator = ToolConfigurator(config, executor, environ=ENVIRON)

        with pytest.raises(CommandFailedError):
            await configurator.configure_tools(target, ["supabase"])

    @pytest.mark.asyncio
    async def test_other_restart_failure_fatal_during_bring_up(self, config, target):
        executor = FakeRemoteExecutor(failures={
            "systemctl restart": CommandFailedError(1, "Job failed"),
        })
        configurator = ToolConfigurator(config, executor, environ=ENVIRON)

        with pytest.raises(CommandFailedError):
            await configurator.configure_tools(target, ["supabase"], bring_up=True)

    @pytest.mark.asyncio
    async def test_missing_systemctl_fatal_during_bring_up(self, config, target):
        executor = FakeRemoteExecutor(failures={
            "systemctl restart": CommandFailedError(1, "sudo: systemctl: command not found"),
        })
        configurator = ToolConfigurator(config, executor, environ=ENVIRON)

        with pytest.raises(CommandFailedError, match="command not found"):
            await configurator.configure_tools(target, ["supabase"], bring_up=True)

    @pytest.mark.asyncio
    async def test_unit_not_found_text_tolerated_during_bring_up(self, config, target):
        executor = FakeRemoteExecutor(failures={
            "systemctl restart": CommandFailedError(
                1, "Failed to restart mcporter.service: Unit mcporter.service not found."
            ),
        })
        configurator = ToolConfigurator(config, executor, environ=ENVIRON)

        assert await configurator.configure_tools(target, ["supabase"], bring_up=True) == ["supabase"]
