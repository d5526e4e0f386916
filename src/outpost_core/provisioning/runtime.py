"""Commands that write and verify gateway tokens in the runtime config.

Tokens are written straight into the JSON config with node instead of the
runtime's own config CLI, which rewrites values it is given. The payload
travels base64-encoded so no token text appears in shell syntax.
"""

import base64
import json
import shlex
from typing import Any

from outpost_core.exceptions import ProvisioningError

_WRITE_SCRIPT = (
    "const fs=require('fs');"
    "const p={path};"
    "const t=JSON.parse(Buffer.from('{payload}','base64').toString('utf8'));"
    "const c=fs.existsSync(p)?JSON.parse(fs.readFileSync(p,'utf8')):{{}};"
    "c.gateway=c.gateway||{{}};"
    "c.gateway.auth=c.gateway.auth||{{}};"
    "c.gateway.auth.token=t.gateway;"
    "c.gateway.remote=c.gateway.remote||{{}};"
    "c.gateway.remote.token=t.gateway;"
    "c.gateway.mode='local';"
    "c.hooks=c.hooks||{{}};"
    "c.hooks.token=t.hook;"
    "fs.writeFileSync(p,JSON.stringify(c,null,2));"
)

_READ_SCRIPT = (
    "const fs=require('fs');"
    "const c=JSON.parse(fs.readFileSync({path},'utf8'));"
    "const g=c.gateway||{{}};"
    "process.stdout.write(JSON.stringify({{"
    "gateway:(g.auth||{{}}).token,"
    "remote:(g.remote||{{}}).token,"
    "hook:(c.hooks||{{}}).token"
    "}}));"
)


def encode_token_payload(gateway_token: str, hook_token: str) -> str:
    """Base64 payload consumed by the write script."""
    data = json.dumps({"gateway": gateway_token, "hook": hook_token}, sort_keys=True)
    return base64.b64encode(data.encode()).decode()


def token_write_command(config_path: str, gateway_token: str, hook_token: str) -> str:
    script = _WRITE_SCRIPT.format(
        path=json.dumps(config_path),
        payload=encode_token_payload(gateway_token, hook_token),
    )
    return f"node -e {shlex.quote(script)}"


def token_read_command(config_path: str) -> str:
    script = _READ_SCRIPT.format(path=json.dumps(config_path))
    return f"node -e {shlex.quote(script)}"


def verify_token_readback(output: str, gateway_token: str, hook_token: str) -> None:
    """Check that the config file holds exactly the tokens written.

    Raises:
        ProvisioningError: If the values differ or the output is unreadable
    """
    try:
        values: Any = json.loads(output)
    except ValueError as e:
        raise ProvisioningError("Runtime config read-back was not valid JSON") from e

    if not isinstance(values, dict):
        raise ProvisioningError("Runtime config read-back was not an object")

    mismatched = [
        key
        for key, expected in (
            ("gateway", gateway_token),
            ("remote", gateway_token),
            ("hook", hook_token),
        )
        if values.get(key) != expected
    ]
    if mismatched:
        raise ProvisioningError(
            f"Runtime config tokens did not round-trip: {', '.join(mismatched)}"
        )


def unit_token_sync_command(unit_path: str, gateway_token: str) -> str:
    """Point the gateway user unit at the new token. Tolerates a missing unit."""
    expression = (
        "s/Environment=OPENCLAW_GATEWAY_TOKEN=.*/"
        f"Environment=OPENCLAW_GATEWAY_TOKEN={gateway_token}/"
    )
    return f"sed -i {shlex.quote(expression)} {shlex.quote(unit_path)} 2>/dev/null || true"


USER_DAEMON_RELOAD_COMMAND = (
    "XDG_RUNTIME_DIR=/run/user/$(id -u) systemctl --user daemon-reload 2>/dev/null || true"
)
DOCTOR_COMMAND = "nohup openclaw doctor --fix > /tmp/openclaw-doctor.log 2>&1 &"
