"""Outpost Core exceptions."""


class OutpostError(Exception):
    """Base exception for outpost-core."""

    pass


class ConfigError(OutpostError):
    """Configuration error."""

    pass


class ProviderError(OutpostError):
    """An external provider API returned an error."""

    pass


class ComputeProviderError(ProviderError):
    """Compute provider request failed."""

    pass


class DnsProviderError(ProviderError):
    """DNS provider request failed."""

    pass


class DatabaseProjectError(ProviderError):
    """Database project control API request failed."""

    pass


class RemoteError(OutpostError):
    """Remote command channel error."""

    pass


class RemoteConnectionError(RemoteError):
    """Could not open or keep a remote shell after all attempts."""

    pass


class CommandFailedError(RemoteError):
    """A remote command ran but exited with a non-zero status."""

    def __init__(self, exit_status: int | None, stderr: str = "") -> None:
        self.exit_status = exit_status
        self.stderr = stderr
        super().__init__(f"Remote command failed (exit={exit_status}): {stderr[:500]}")


class DeadlineExceededError(OutpostError):
    """A readiness wait did not succeed before its deadline."""

    def __init__(
        self,
        what: str,
        timeout: float,
        last_error: BaseException | None = None,
    ) -> None:
        self.what = what
        self.timeout = timeout
        self.last_error = last_error
        message = f"{what} not ready within {timeout:g}s"
        if last_error is not None:
            message += f" (last error: {last_error})"
        super().__init__(message)


class ProvisioningError(OutpostError):
    """Provisioning invariant violated."""

    pass


class TenantNotFoundError(OutpostError):
    """No infrastructure record exists for the tenant."""

    pass


class TeardownError(OutpostError):
    """One or more teardown steps failed; the rest were still attempted."""

    def __init__(self, tenant_id: str, failures: list[str]) -> None:
        self.tenant_id = tenant_id
        self.failures = failures
        super().__init__(
            f"Teardown partially failed for tenant {tenant_id}: {'; '.join(failures)}"
        )


class QueueFullError(OutpostError):
    """The provisioning queue has no free slots."""

    pass
