"""Provisioning orchestrator.

Drives a freshly created compute resource through the fixed phase
sequence, records progress in the status registry, and on any failure
deletes what was created before re-raising the original error.

Phase order:
    CREATING -> WAITING_ACTIVE -> WAITING_SSH -> CONFIGURING -> DNS
    -> VERIFYING -> [NGINX] -> COMPLETE

WAITING_ACTIVE is the only concurrent step: the compute readiness wait
and the database project setup run side by side and are both joined
before moving on.
"""

import asyncio
import time
import traceback
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, TypeVar

from outpost_core.exceptions import ProvisioningError, TeardownError, TenantNotFoundError
from outpost_core.observability import (
    ProvisioningContext,
    Timer,
    emit_counter,
    emit_timer,
    get_logger,
)
from outpost_core.protocols import (
    ComputeProvider,
    DatabaseProjectProvider,
    DnsProvider,
    RemoteExecutor,
    TenantRecordStore,
)
from outpost_core.provisioning import runtime
from outpost_core.provisioning.configurator import ToolConfigurator, ToolTarget
from outpost_core.provisioning.models import (
    ClientTenantInfrastructure,
    TenantInfrastructure,
    to_client_projection,
)
from outpost_core.provisioning.nginx import ReverseProxyInstaller
from outpost_core.provisioning.pairing import PairingHandshake
from outpost_core.provisioning.schema import bootstrap_schema
from outpost_core.provisioning.status import Phase, ProvisioningStatus, StatusRegistry
from outpost_core.utils.crypto import generate_hex_token, generate_remote_secret
from outpost_core.utils.polling import poll_until
from outpost_core.utils.validation import sanitize_dns_label

if TYPE_CHECKING:
    from outpost_core.config import Config

logger = get_logger(__name__)

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class CreateResult:
    """Returned by ``create_and_provision``.

    The secret goes only to the in-process caller, which hands it to
    ``provision_resource``.
    """

    resource_id: int
    status: ProvisioningStatus
    secret: str = field(repr=False)


@dataclass
class _Run:
    """Per-run bookkeeping shared between phases and rollback."""

    resource_id: int
    name: str
    project_ref: str | None = None
    phase: Phase = Phase.CREATING
    phase_started: float = field(default_factory=time.perf_counter)


async def _join_both(first: Awaitable[T], second: Awaitable[U]) -> tuple[T, U]:
    """Run two awaitables concurrently and wait for both.

    If either fails, the other is cancelled and the original exception
    propagates unchanged.
    """
    tasks = [asyncio.ensure_future(first), asyncio.ensure_future(second)]
    try:
        a, b = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    return a, b


class ProvisioningOrchestrator:
    """Creates, provisions, reconfigures and tears down tenant infrastructure."""

    def __init__(
        self,
        config: "Config",
        compute: ComputeProvider,
        dns: DnsProvider,
        database: DatabaseProjectProvider,
        executor: RemoteExecutor,
        records: TenantRecordStore,
        registry: StatusRegistry | None = None,
        configurator: ToolConfigurator | None = None,
        reverse_proxy: ReverseProxyInstaller | None = None,
        pairing: PairingHandshake | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Application configuration
            compute: Compute provider
            dns: DNS provider
            database: Database project provider
            executor: Remote command executor
            records: Tenant record store
            registry: Status registry (a new one if omitted)
            configurator: Tool configurator (built from config if omitted)
            reverse_proxy: nginx/TLS installer (built from config if omitted)
            pairing: Pairing handshake (built from config if omitted)
        """
        self.config = config
        self.compute = compute
        self.dns = dns
        self.database = database
        self.executor = executor
        self.records = records
        self.registry = registry if registry is not None else StatusRegistry()
        self.configurator = configurator or ToolConfigurator(config, executor)
        self.reverse_proxy = reverse_proxy or ReverseProxyInstaller(config, executor)
        self.pairing = pairing or PairingHandshake(config, executor)
        self._running: set[int] = set()

    # ── Public API ─────────────────────────────────────────────────────

    async def create_and_provision(self, name: str) -> CreateResult:
        """Create the compute resource and register its status.

        Provisioning itself is started separately with
        ``provision_resource``, typically from a work queue.

        Raises:
            ValueError: If the name has no usable characters
        """
        if not name or not name.strip():
            raise ValueError("name cannot be empty")

        secret = generate_remote_secret()
        resource_id = await self.compute.create(name, secret)
        status = self.registry.create(
            resource_id,
            name,
            message="Resource created, waiting for it to become active",
        )

        emit_counter("provisioning.started", {"resource_id": str(resource_id)})
        logger.info("Compute resource created", context={"resource_id": resource_id, "name": name})
        return CreateResult(resource_id=resource_id, status=status, secret=secret)

    def get_status(self, resource_id: int) -> ProvisioningStatus | None:
        """Current status snapshot for a resource, if known."""
        return self.registry.get(resource_id)

    async def provision_resource(
        self,
        resource_id: int,
        secret: str,
        tenant_id: str,
    ) -> ClientTenantInfrastructure:
        """Run every phase for a created resource.

        On failure the compute resource and any database project are
        deleted, the status is marked FAILED, and the original exception
        is re-raised.

        Returns:
            Client-safe view of the persisted tenant record

        Raises:
            ProvisioningError: If the resource is already being provisioned
                or has finished; nothing is rolled back in that case
        """
        if resource_id in self._running:
            raise ProvisioningError(f"Resource {resource_id} is already being provisioned")
        status = self.registry.get(resource_id)
        if status is None:
            status = self.registry.create(resource_id, f"resource-{resource_id}")
        elif status.phase is not Phase.CREATING:
            raise ProvisioningError(
                f"Resource {resource_id} is already {status.phase.value}, "
                f"a run only starts from {Phase.CREATING.value}"
            )

        run = _Run(resource_id=resource_id, name=status.name)
        self._running.add(resource_id)

        try:
            async with ProvisioningContext(resource_id=resource_id, tenant_id=tenant_id):
                try:
                    with Timer() as timer:
                        record = await self._run_phases(run, secret, tenant_id)
                except (Exception, asyncio.CancelledError) as e:
                    failed_phase = run.phase
                    logger.error(
                        "Provisioning failed, cleaning up",
                        context={"phase": failed_phase.value},
                        error=e,
                    )
                    # Cancellation must not skip deleting paid resources
                    await asyncio.shield(self._rollback(run))
                    self._record_failure(run, e)
                    emit_counter("provisioning.failed", {"phase": failed_phase.value})
                    raise

                emit_counter("provisioning.completed")
                logger.info("Provisioning complete", duration_ms=timer.duration_ms)
                return to_client_projection(record)
        finally:
            self._running.discard(resource_id)

    async def abandon(self, resource_id: int, reason: str) -> None:
        """Roll back a created resource whose run will never start.

        Used for jobs still queued when the work queue shuts down. A
        resource that is running or past CREATING is left alone.
        """
        status = self.registry.get(resource_id)
        if resource_id in self._running or (
            status is not None and status.phase is not Phase.CREATING
        ):
            logger.warning(
                "Not abandoning resource that has already started",
                context={"resource_id": resource_id},
            )
            return
        name = status.name if status is not None else f"resource-{resource_id}"
        run = _Run(resource_id=resource_id, name=name)

        async with ProvisioningContext(resource_id=resource_id):
            logger.warning("Abandoning queued provisioning run", context={"reason": reason})
            await self._rollback(run)
            self.registry.record_failure(
                resource_id,
                name,
                f"Provisioning abandoned (resource destroyed): {reason}",
                reason,
            )
            emit_counter("provisioning.failed", {"phase": run.phase.value})

    async def update_tools(
        self,
        tenant_id: str,
        tool_names: Iterable[str],
    ) -> ClientTenantInfrastructure:
        """Reconfigure a provisioned tenant's tools to exactly ``tool_names``.

        Raises:
            TenantNotFoundError: If the tenant has no record
        """
        record = await self.records.get(tenant_id)
        if record is None:
            raise TenantNotFoundError(f"No infrastructure found for tenant {tenant_id}")

        async with ProvisioningContext(resource_id=record.resource_id, tenant_id=tenant_id):
            target = ToolTarget(
                host=record.ip_address,
                secret=record.remote_access_secret,
                project_ref=record.project_ref,
                gateway_token=record.gateway_token,
            )
            configured = await self.configurator.configure_tools(target, tool_names)
            updated = replace(record, configured_tools=configured)
            await self.records.save(updated)

        return to_client_projection(updated)

    async def teardown(self, tenant_id: str) -> None:
        """Delete everything provisioned for a tenant.

        Every step is attempted even when earlier ones fail.

        Raises:
            TenantNotFoundError: If the tenant has no record
            TeardownError: If any step failed, listing all failures
        """
        record = await self.records.get(tenant_id)
        if record is None:
            raise TenantNotFoundError(f"No infrastructure found for tenant {tenant_id}")

        failures: list[str] = []

        async def attempt(label: str, action: Awaitable[Any]) -> None:
            try:
                await action
                logger.info("Teardown step done", context={"step": label})
            except Exception as e:
                logger.error("Teardown step failed", context={"step": label}, error=e)
                failures.append(f"{label}: {e}")

        async with ProvisioningContext(resource_id=record.resource_id, tenant_id=tenant_id):
            await attempt("compute", self.compute.delete(record.resource_id))
            if record.project_ref:
                await attempt("database project", self.database.delete(record.project_ref))
            await attempt("dns", self.dns.delete_record(sanitize_dns_label(record.resource_name)))
            await attempt("record store", self.records.delete(tenant_id))
            self.registry.remove(record.resource_id)

            if failures:
                emit_counter("teardown.partial_failure", {"failures": len(failures)})
                raise TeardownError(tenant_id, failures)

            logger.info("Teardown complete")

    # ── Phases ─────────────────────────────────────────────────────────

    def _enter(self, run: _Run, phase: Phase, message: str, **changes: Any) -> None:
        now = time.perf_counter()
        emit_timer(
            "provisioning.phase_duration_ms",
            (now - run.phase_started) * 1000,
            {"phase": run.phase.value},
        )
        self.registry.transition(run.resource_id, phase, message, **changes)
        run.phase = phase
        run.phase_started = now
        logger.info("Phase started", context={"phase": phase.value})

    async def _run_phases(
        self,
        run: _Run,
        secret: str,
        tenant_id: str,
    ) -> TenantInfrastructure:
        name = run.name
        remote = self.config.remote
        tls_enabled = self.config.tls.enabled

        self._enter(
            run,
            Phase.WAITING_ACTIVE,
            "Waiting for the resource to become active and creating the database project",
        )
        ip, (project_ref, service_credential) = await _join_both(
            self._wait_for_compute(run.resource_id),
            self._prepare_database(run, name),
        )

        self._enter(run, Phase.WAITING_SSH, "Waiting for SSH", ip_address=ip)
        await self.executor.wait_for_port_ready(ip)
        await self.executor.wait_for_auth_ready(ip, secret)

        self._enter(run, Phase.CONFIGURING, "Configuring gateway tokens and tools")
        gateway_token = generate_hex_token()
        hook_token = generate_hex_token()
        configured_tools = await self._configure_runtime(
            ip, secret, project_ref, gateway_token, hook_token
        )

        self._enter(run, Phase.DNS, "Creating DNS record")
        fqdn = await self.dns.create_record(sanitize_dns_label(name), ip)

        self._enter(run, Phase.VERIFYING, "Verifying gateway", subdomain=fqdn)
        await self._verify_gateway(ip, secret)

        if tls_enabled:
            self._enter(run, Phase.NGINX, "Configuring reverse proxy and TLS")
            await self.reverse_proxy.install(ip, secret, fqdn)
        else:
            logger.info("TLS disabled, skipping reverse proxy")

        if tls_enabled:
            internal_gateway_url = f"https://{fqdn}"
        else:
            internal_gateway_url = f"http://{ip}:{remote.gateway_port}"
        public_url = self.config.gateway.public_url

        outcome = await self.pairing.run(internal_gateway_url, gateway_token, ip, secret)
        logger.info("Pairing finished", context={"outcome": outcome.value})

        record = TenantInfrastructure(
            tenant_id=tenant_id,
            resource_id=run.resource_id,
            resource_name=name,
            gateway_url=public_url,
            internal_gateway_url=internal_gateway_url,
            gateway_token=gateway_token,
            hook_token=hook_token,
            remote_access_secret=secret,
            ip_address=ip,
            project_ref=project_ref,
            service_credential=service_credential,
            created_at=time.time(),
            subdomain=fqdn if tls_enabled else None,
            status="active",
            tls_enabled=tls_enabled,
            configured_tools=configured_tools,
        )
        await self.records.save(record)

        self._enter(
            run,
            Phase.COMPLETE,
            f"Provisioning complete. Connect via proxy at {public_url}",
        )
        return record

    async def _wait_for_compute(self, resource_id: int) -> str:
        timeouts = self.config.timeouts

        async def probe() -> str | None:
            state = await self.compute.get_state(resource_id)
            if state.is_ready:
                return state.ipv4
            logger.debug("Compute resource not ready", context={"status": state.status})
            return None

        ip = await poll_until(
            probe,
            what=f"compute resource {resource_id}",
            timeout=timeouts.compute_ready_timeout,
            interval=timeouts.compute_poll_interval,
        )
        logger.info("Compute resource active", context={"ip": ip})
        return ip

    async def _prepare_database(self, run: _Run, name: str) -> tuple[str, str]:
        settings = self.config.database
        project_ref = await self.database.create(
            f"{settings.project_prefix}-{sanitize_dns_label(name)}"
        )
        # Rollback needs the ref even if the wait below fails
        run.project_ref = project_ref

        await self.database.wait_until_active(project_ref)
        credential = await self.database.get_service_credential(project_ref)
        await bootstrap_schema(
            self.database,
            project_ref,
            webhook_base_url=settings.webhook_base_url,
            webhook_secret=settings.webhook_secret,
        )
        return project_ref, credential

    async def _configure_runtime(
        self,
        ip: str,
        secret: str,
        project_ref: str,
        gateway_token: str,
        hook_token: str,
    ) -> list[str]:
        remote = self.config.remote

        await self.executor.run(
            ip, secret, runtime.token_write_command(remote.runtime_config_path, gateway_token, hook_token)
        )
        readback = await self.executor.run(ip, secret, runtime.token_read_command(remote.runtime_config_path))
        runtime.verify_token_readback(readback, gateway_token, hook_token)

        await self.executor.run(ip, secret, f"sudo loginctl enable-linger {remote.user}")
        await self.executor.run(
            ip, secret, runtime.unit_token_sync_command(remote.gateway_unit_path, gateway_token)
        )
        await self.executor.run(ip, secret, runtime.USER_DAEMON_RELOAD_COMMAND)

        configured = await self.configurator.configure_tools(
            ToolTarget(host=ip, secret=secret, project_ref=project_ref, gateway_token=gateway_token),
            self.config.tools.default,
            bring_up=True,
        )

        services = " ".join((remote.relay_service, remote.tool_client_service, remote.gateway_service))
        await self.executor.run(ip, secret, f"sudo systemctl start {services}")
        await self.executor.run(ip, secret, runtime.DOCTOR_COMMAND)
        return configured

    async def _verify_gateway(self, ip: str, secret: str) -> None:
        timeouts = self.config.timeouts

        async def probe() -> bool:
            await self.executor.run_once(ip, secret, self.config.remote.health_command)
            return True

        await poll_until(
            probe,
            what="gateway health",
            timeout=timeouts.verify_timeout,
            interval=timeouts.verify_interval,
        )

    def _record_failure(self, run: _Run, error: BaseException) -> None:
        reason = str(error) or type(error).__name__
        self.registry.record_failure(
            run.resource_id,
            run.name,
            f"Provisioning failed (resource destroyed): {reason}",
            "".join(traceback.format_exception(type(error), error, error.__traceback__)),
        )

    async def _rollback(self, run: _Run) -> None:
        """Delete the compute resource and database project.

        Both deletions are attempted; their failures are logged and never
        replace the provisioning error.
        """
        try:
            await self.compute.delete(run.resource_id)
            logger.info("Compute resource deleted after failure")
        except Exception as e:
            logger.error("Failed to delete compute resource during rollback", error=e)

        if run.project_ref is None:
            return
        try:
            await self.database.delete(run.project_ref)
            logger.info("Database project deleted after failure", context={"project_ref": run.project_ref})
        except Exception as e:
            logger.error(
                "Failed to delete database project during rollback",
                context={"project_ref": run.project_ref},
                error=e,
            )


__all__ = ["CreateResult", "ProvisioningOrchestrator"]
