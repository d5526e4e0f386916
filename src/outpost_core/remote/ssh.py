"""SSH command execution against provisioned hosts.

Hosts are freshly created and authenticate with a generated password, so
host keys are not pinned. Every command runs inside a login shell so the
user's systemd bus and profile environment are available.
"""

import asyncio
import shlex
from typing import TYPE_CHECKING, Any

import asyncssh

from outpost_core.exceptions import CommandFailedError, RemoteConnectionError
from outpost_core.observability import Timer, get_logger
from outpost_core.utils.polling import poll_until

if TYPE_CHECKING:
    from outpost_core.config import Config

logger = get_logger(__name__)


def login_shell(command: str) -> str:
    """Wrap a command so it runs in a bash login shell."""
    return f"bash -l -c {shlex.quote(command)}"


class SSHExecutor:
    """Password-authenticated SSH executor with readiness probes.

    Connection failures are retried with linear backoff. A command that
    runs and exits non-zero is never retried.
    """

    def __init__(self, config: "Config") -> None:
        """Initialize the executor.

        Args:
            config: Application configuration (``remote`` and ``timeouts``)
        """
        self.remote = config.remote
        self.timeouts = config.timeouts

    async def _connect(self, host: str, secret: str) -> Any:
        return await asyncssh.connect(
            host,
            port=self.remote.ssh_port,
            username=self.remote.user,
            password=secret,
            known_hosts=None,
            client_keys=None,
            agent_path=None,
            connect_timeout=self.remote.connect_timeout,
        )

    async def wait_for_port_ready(self, host: str) -> None:
        """Poll until the SSH port accepts TCP connections.

        Raises:
            DeadlineExceededError: If the port stays closed past the deadline
        """

        async def probe() -> bool:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, self.remote.ssh_port),
                timeout=self.timeouts.port_probe_timeout,
            )
            writer.close()
            await writer.wait_closed()
            return True

        await poll_until(
            probe,
            what=f"SSH port on {host}",
            timeout=self.timeouts.port_ready_timeout,
            interval=self.timeouts.port_poll_interval,
        )
        logger.info("SSH port reachable", context={"host": host})

    async def wait_for_auth_ready(self, host: str, secret: str) -> None:
        """Poll until a full password login succeeds.

        An open port only means sshd is up; cloud-init may still be
        applying the password.

        Raises:
            DeadlineExceededError: If login keeps failing past the deadline
        """

        async def probe() -> bool:
            conn = await self._connect(host, secret)
            conn.close()
            await conn.wait_closed()
            return True

        await poll_until(
            probe,
            what=f"SSH login on {host}",
            timeout=self.timeouts.auth_ready_timeout,
            interval=self.timeouts.auth_poll_interval,
        )
        logger.info("SSH login accepted", context={"host": host})

    async def run(self, host: str, secret: str, command: str) -> str:
        """Run a command, retrying connection failures.

        Returns:
            Command stdout

        Raises:
            CommandFailedError: If the command exits non-zero
            RemoteConnectionError: If every connection attempt failed
        """
        attempts = max(1, self.remote.max_attempts)

        for attempt in range(1, attempts):
            try:
                return await self.run_once(host, secret, command)
            except RemoteConnectionError as e:
                delay = self.remote.retry_backoff_seconds * attempt
                logger.warning(
                    "SSH attempt failed, retrying",
                    context={"host": host, "attempt": attempt, "delay_s": delay, "reason": str(e)},
                )
                await asyncio.sleep(delay)

        # Last attempt: its connection error propagates
        return await self.run_once(host, secret, command)

    async def run_once(self, host: str, secret: str, command: str) -> str:
        """Run a command over a single connection attempt.

        Returns:
            Command stdout

        Raises:
            CommandFailedError: If the command exits non-zero or times out
            RemoteConnectionError: If the connection could not be used
        """
        try:
            conn = await self._connect(host, secret)
        except (OSError, asyncssh.Error, asyncio.TimeoutError) as e:
            raise RemoteConnectionError(f"Could not connect to {host}: {e}") from e

        try:
            with Timer() as timer:
                result = await asyncio.wait_for(
                    conn.run(login_shell(command), check=False),
                    timeout=self.remote.command_timeout,
                )
        except asyncio.TimeoutError as e:
            raise CommandFailedError(
                None, f"command timed out after {self.remote.command_timeout:g}s"
            ) from e
        except (OSError, asyncssh.Error) as e:
            raise RemoteConnectionError(f"SSH session to {host} failed: {e}") from e
        finally:
            conn.close()
            await conn.wait_closed()

        stdout = _as_text(result.stdout)
        stderr = _as_text(result.stderr)

        logger.info(
            "SSH command finished",
            context={
                "host": host,
                "exit_status": result.exit_status,
                "stdout_bytes": len(stdout),
                "stderr_bytes": len(stderr),
            },
            duration_ms=timer.duration_ms,
        )

        if result.exit_status not in (0, None):
            raise CommandFailedError(result.exit_status, stderr)
        return stdout


def _as_text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode(errors="replace")
    return value
