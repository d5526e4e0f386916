"""Configuration loading with environment variable substitution."""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)\}")


def substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR_NAME} patterns with environment variables."""
    if isinstance(value, str):
        def replace(match: re.Match[str]) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(f"Environment variable {var_name} is not set")
            return env_value

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]
    return value


class DigitalOceanComputeConfig(BaseModel):
    """DigitalOcean droplet settings."""

    api_token: str | None = None
    snapshot_id: str = "218575988"
    region: str = "sfo2"
    size: str = "s-1vcpu-2gb"
    vpc_uuid: str | None = None
    ssh_keys: list[str] = Field(default_factory=list)


class HetznerComputeConfig(BaseModel):
    """Hetzner Cloud server settings."""

    api_token: str | None = None
    snapshot_id: str | None = None
    server_type: str = "cx22"
    location: str = "nbg1"
    ssh_key: str | None = None


class ComputeConfig(BaseModel):
    """Compute provider selection."""

    backend: str = "digitalocean"  # digitalocean | hetzner
    digitalocean: DigitalOceanComputeConfig = Field(default_factory=DigitalOceanComputeConfig)
    hetzner: HetznerComputeConfig = Field(default_factory=HetznerComputeConfig)


class DnsConfig(BaseModel):
    """DNS provider selection."""

    backend: str = "digitalocean"  # digitalocean | hetzner | cloudflare
    domain: str | None = None
    api_token: str | None = None
    zone_id: str | None = None  # Cloudflare only
    ttl: int = 300


class DatabaseProjectConfig(BaseModel):
    """Managed database project (Supabase management API) settings."""

    management_token: str | None = None
    organization_id: str | None = None
    region: str = "us-east-1"
    plan: str = "free"
    project_prefix: str = "outpost"
    webhook_base_url: str | None = None
    webhook_secret: str | None = None


class RemoteConfig(BaseModel):
    """Remote host layout and SSH behaviour."""

    user: str = "openclaw"
    ssh_port: int = 22
    connect_timeout: float = 10.0
    command_timeout: float = 300.0
    max_attempts: int = 3
    retry_backoff_seconds: float = 2.0
    gateway_port: int = 18789
    relay_port: int = 18790
    runtime_config_path: str = "/home/openclaw/.openclaw/openclaw.json"
    gateway_unit_path: str = "/home/openclaw/.config/systemd/user/openclaw-gateway.service"
    bundle_dir: str = "/etc/outpost"
    client_config_path: str = "/home/openclaw/.mcporter/mcporter.json"
    relay_service: str = "mcp-auth-proxy"
    tool_client_service: str = "mcporter"
    gateway_service: str = "openclaw-gateway"
    health_command: str = "openclaw gateway status"
    approve_command: str = "openclaw devices approve"


class TLSConfig(BaseModel):
    """Reverse proxy TLS settings (wildcard certificate shipped from local disk)."""

    enabled: bool = False
    cert_dir: str = "/etc/letsencrypt/live/example.com"
    remote_cert_dir: str = "/etc/ssl/certs/outpost"
    site_name: str = "openclaw"


class TimeoutsConfig(BaseModel):
    """Poll intervals and deadlines in seconds."""

    compute_poll_interval: float = 5.0
    compute_ready_timeout: float = 300.0
    port_poll_interval: float = 2.0
    port_ready_timeout: float = 120.0
    port_probe_timeout: float = 3.0
    auth_poll_interval: float = 5.0
    auth_ready_timeout: float = 180.0
    project_poll_interval: float = 5.0
    project_ready_timeout: float = 180.0
    verify_interval: float = 2.0
    verify_timeout: float = 30.0
    pairing_timeout: float = 25.0
    pairing_receive_timeout: float = 2.5
    pairing_open_attempts: int = 3
    pairing_open_retry_delay: float = 1.0


class GatewayConfig(BaseModel):
    """Client-facing gateway settings."""

    public_url: str = "wss://api.example.com"


class ToolsConfig(BaseModel):
    """Remote tool defaults."""

    default: list[str] = Field(default_factory=lambda: ["supabase"])
    aws_region: str = "us-east-1"


class RecordsConfig(BaseModel):
    """Tenant record store backend."""

    backend: str = "memory"  # memory | sqlite
    path: str | None = None
    encryption_key: str | None = None


class QueueConfig(BaseModel):
    """Provisioning work queue."""

    max_pending: int = 100
    workers: int = 4


class LoggingConfig(BaseModel):
    """Logging output."""

    level: str = "INFO"
    format: str = "json"  # json | text


class Config(BaseModel):
    """Main configuration for outpost-core."""

    compute: ComputeConfig = Field(default_factory=ComputeConfig)
    dns: DnsConfig = Field(default_factory=DnsConfig)
    database: DatabaseProjectConfig = Field(default_factory=DatabaseProjectConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    tls: TLSConfig = Field(default_factory=TLSConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    records: RecordsConfig = Field(default_factory=RecordsConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, path: str | Path) -> "Config":
        """Load configuration from a YAML or JSON file."""
        path = Path(path)
        with path.open() as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                import json
                data = json.load(f)

        # Substitute environment variables
        data = substitute_env_vars(data or {})
        return cls.model_validate(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Load configuration from a dictionary."""
        data = substitute_env_vars(data)
        return cls.model_validate(data)
