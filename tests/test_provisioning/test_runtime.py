"""Tests for runtime token commands."""

import base64
import json
import shlex

import pytest

from outpost_core.exceptions import ProvisioningError
from outpost_core.provisioning.runtime import (
    encode_token_payload,
    token_read_command,
    token_write_command,
    unit_token_sync_command,
    verify_token_readback,
)


class TestTokenCommands:
    """Tests for write and read commands."""

    def test_payload_round_trip(self):
        payload = json.loads(base64.b64decode(encode_token_payload("gw", "hook")))
        assert payload == {"gateway": "gw", "hook": "hook"}

    def test_write_command_hides_tokens(self):
        command = token_write_command("/home/openclaw/.openclaw/openclaw.json", "gw-token-abc", "hook-xyz")

        assert command.startswith("node -e ")
        assert "gw-token-abc" not in command
        assert "hook-xyz" not in command
        script = shlex.split(command)[2]
        assert encode_token_payload("gw-token-abc", "hook-xyz") in script
        assert 'const p="/home/openclaw/.openclaw/openclaw.json";' in script
        assert "c.gateway.mode='local';" in script

    def test_read_command(self):
        script = shlex.split(token_read_command("/tmp/c.json"))[2]
        assert 'readFileSync("/tmp/c.json"' in script
        assert "process.stdout.write" in script

    def test_unit_sync_tolerates_missing_unit(self):
        command = unit_token_sync_command("/u/openclaw-gateway.service", "abc123")
        assert "Environment=OPENCLAW_GATEWAY_TOKEN=abc123" in command
        assert command.endswith("|| true")


class TestVerifyTokenReadback:
    """Tests for verify_token_readback."""

    def test_matching_values(self):
        verify_token_readback('{"gateway": "g", "remote": "g", "hook": "h"}', "g", "h")

    def test_mismatch(self):
        with pytest.raises(ProvisioningError, match="remote"):
            verify_token_readback('{"gateway": "g", "remote": "x", "hook": "h"}', "g", "h")

    def test_missing_value(self):
        with pytest.raises(ProvisioningError, match="hook"):
            verify_token_readback('{"gateway": "g", "remote": "g"}', "g", "h")

    def test_invalid_json(self):
        with pytest.raises(ProvisioningError, match="not valid JSON"):
            verify_token_readback("Error: ENOENT", "g", "h")

    def test_not_an_object(self):
        with pytest.raises(ProvisioningError, match="not an object"):
            verify_token_readback("[]", "g", "h")
