"""Reverse proxy, TLS certificate and firewall setup.

TLS uses a wildcard certificate already present on the orchestrator's
disk; nothing is requested from a CA per tenant.
"""

import base64
import posixpath
import shlex
from pathlib import Path
from typing import TYPE_CHECKING

from outpost_core.exceptions import ConfigError
from outpost_core.observability import get_logger
from outpost_core.protocols.remote import RemoteExecutor

if TYPE_CHECKING:
    from outpost_core.config import Config

logger = get_logger(__name__)

CERT_FILE = "fullchain.pem"
KEY_FILE = "privkey.pem"

_PROXY_LOCATION = """    location / {{
        proxy_pass http://127.0.0.1:{port};
        proxy_http_version 1.1;
        proxy_set_header Upgrade $http_upgrade;
        proxy_set_header Connection "upgrade";
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
        proxy_read_timeout 86400;
        proxy_send_timeout 86400;
    }}"""

# SSH must be allowed before the firewall goes up
FIREWALL_COMMANDS = (
    "sudo ufw allow OpenSSH",
    "sudo ufw allow 'Nginx Full'",
    "sudo ufw --force enable",
)


def render_http_config(server_name: str, port: int) -> str:
    """Plain HTTP site proxying to the local gateway."""
    return (
        "server {\n"
        "    listen 80;\n"
        "    listen [::]:80;\n"
        f"    server_name {server_name};\n"
        "\n"
        f"{_PROXY_LOCATION.format(port=port)}\n"
        "}\n"
    )


def render_https_config(server_name: str, port: int, cert_dir: str) -> str:
    """HTTPS site with a permanent redirect from port 80."""
    cert = posixpath.join(cert_dir, CERT_FILE)
    key = posixpath.join(cert_dir, KEY_FILE)
    return (
        "server {\n"
        "    listen 80;\n"
        "    listen [::]:80;\n"
        f"    server_name {server_name};\n"
        "    return 301 https://$server_name$request_uri;\n"
        "}\n"
        "\n"
        "server {\n"
        "    listen 443 ssl http2;\n"
        "    listen [::]:443 ssl http2;\n"
        f"    server_name {server_name};\n"
        "\n"
        f"    ssl_certificate {cert};\n"
        f"    ssl_certificate_key {key};\n"
        "    ssl_protocols TLSv1.2 TLSv1.3;\n"
        "    ssl_ciphers HIGH:!aNULL:!MD5;\n"
        "    ssl_prefer_server_ciphers on;\n"
        "\n"
        f"{_PROXY_LOCATION.format(port=port)}\n"
        "}\n"
    )


class ReverseProxyInstaller:
    """Puts nginx with TLS in front of the gateway and enables the firewall."""

    def __init__(self, config: "Config", executor: RemoteExecutor) -> None:
        self.tls = config.tls
        self.gateway_port = config.remote.gateway_port
        self.executor = executor

    @property
    def available_path(self) -> str:
        return f"/etc/nginx/sites-available/{self.tls.site_name}"

    @property
    def enabled_path(self) -> str:
        return f"/etc/nginx/sites-enabled/{self.tls.site_name}"

    def read_certificates(self) -> tuple[str, str]:
        """Read the local wildcard certificate chain and key.

        Raises:
            ConfigError: If either file is missing
        """
        cert_dir = Path(self.tls.cert_dir)
        try:
            return (cert_dir / CERT_FILE).read_text(), (cert_dir / KEY_FILE).read_text()
        except FileNotFoundError as e:
            raise ConfigError(f"TLS certificate not found: {e.filename}") from e

    async def install(self, host: str, secret: str, server_name: str) -> None:
        """Configure nginx for ``server_name`` and lock down the firewall."""
        fullchain, privkey = self.read_certificates()

        logger.info("Configuring HTTP reverse proxy", context={"server_name": server_name})
        await self._write(host, secret, self.available_path, render_http_config(server_name, self.gateway_port))
        await self._run(host, secret, f"sudo ln -sf {self.available_path} {self.enabled_path}")
        await self._run(host, secret, "sudo rm -f /etc/nginx/sites-enabled/default")
        await self._reload(host, secret)

        logger.info("Deploying wildcard certificate", context={"server_name": server_name})
        remote_dir = self.tls.remote_cert_dir
        await self._run(host, secret, f"sudo mkdir -p {shlex.quote(remote_dir)}")
        await self._write(host, secret, posixpath.join(remote_dir, CERT_FILE), fullchain, mode="644")
        await self._write(host, secret, posixpath.join(remote_dir, KEY_FILE), privkey, mode="600")

        await self._write(
            host,
            secret,
            self.available_path,
            render_https_config(server_name, self.gateway_port, remote_dir),
        )
        await self._reload(host, secret)
        logger.info("TLS configured", context={"server_name": server_name})

        for command in FIREWALL_COMMANDS:
            await self._run(host, secret, command)
        logger.info("Firewall enabled")

    async def _run(self, host: str, secret: str, command: str) -> None:
        await self.executor.run(host, secret, command)

    async def _reload(self, host: str, secret: str) -> None:
        await self._run(host, secret, "sudo nginx -t")
        await self._run(host, secret, "sudo systemctl reload nginx")

    async def _write(
        self,
        host: str,
        secret: str,
        path: str,
        content: str,
        mode: str | None = None,
    ) -> None:
        encoded = base64.b64encode(content.encode()).decode()
        quoted = shlex.quote(path)
        if mode:
            # File is created with its final mode, never readable in between
            command = f"echo {encoded} | base64 -d | sudo install -m {mode} /dev/stdin {quoted}"
        else:
            command = f"echo {encoded} | base64 -d | sudo tee {quoted} >/dev/null"
        await self._run(host, secret, command)
