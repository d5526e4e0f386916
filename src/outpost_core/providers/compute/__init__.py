"""Compute providers."""

from outpost_core.providers.compute.digitalocean import DigitalOceanComputeProvider
from outpost_core.providers.compute.hetzner import HetznerComputeProvider

__all__ = ["DigitalOceanComputeProvider", "HetznerComputeProvider"]
