"""DNS providers."""

from outpost_core.providers.dns.cloudflare import CloudflareDnsProvider
from outpost_core.providers.dns.digitalocean import DigitalOceanDnsProvider
from outpost_core.providers.dns.hetzner import HetznerDnsProvider

__all__ = ["CloudflareDnsProvider", "DigitalOceanDnsProvider", "HetznerDnsProvider"]
