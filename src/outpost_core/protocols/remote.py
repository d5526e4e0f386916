"""RemoteExecutor protocol for credentialed remote shells."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class RemoteExecutor(Protocol):
    """Protocol for running commands on a provisioned host."""

    async def wait_for_port_ready(self, host: str) -> None:
        """Wait until the remote shell port accepts TCP connections."""
        ...

    async def wait_for_auth_ready(self, host: str, secret: str) -> None:
        """Wait until the remote shell accepts ``secret``."""
        ...

    async def run(self, host: str, secret: str, command: str) -> str:
        """Run a command with connection retries. Returns stdout."""
        ...

    async def run_once(self, host: str, secret: str, command: str) -> str:
        """Run a command with a single connection attempt. Returns stdout."""
        ...
