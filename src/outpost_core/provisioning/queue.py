"""Bounded work queue feeding provisioning runs to a worker pool."""

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from outpost_core.exceptions import QueueFullError
from outpost_core.observability import get_logger

if TYPE_CHECKING:
    from outpost_core.provisioning.orchestrator import ProvisioningOrchestrator

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProvisioningJob:
    """One queued ``provision_resource`` call."""

    resource_id: int
    tenant_id: str
    secret: str = field(repr=False)


class ProvisioningQueue:
    """Runs queued provisioning jobs on a fixed number of worker tasks.

    Example:
        queue = ProvisioningQueue(orchestrator, max_pending=100, workers=4)
        queue.start()
        result = await orchestrator.create_and_provision("alice")
        queue.submit(result.resource_id, result.secret, tenant_id="t-1")
    """

    def __init__(
        self,
        orchestrator: "ProvisioningOrchestrator",
        max_pending: int = 100,
        workers: int = 4,
    ) -> None:
        """Initialize the queue.

        Args:
            orchestrator: Orchestrator that runs the jobs
            max_pending: Maximum number of jobs waiting for a worker
            workers: Number of concurrent worker tasks
        """
        self.orchestrator = orchestrator
        self.worker_count = max(1, workers)
        self._queue: asyncio.Queue[ProvisioningJob] = asyncio.Queue(maxsize=max_pending)
        self._workers: list[asyncio.Task[None]] = []

    @property
    def pending(self) -> int:
        """Jobs waiting for a worker."""
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        """Start the worker tasks. Must be called from a running event loop."""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._work(index), name=f"provisioning-worker-{index}")
            for index in range(self.worker_count)
        ]
        logger.info("Provisioning queue started", context={"workers": self.worker_count})

    def submit(self, resource_id: int, secret: str, tenant_id: str) -> ProvisioningJob:
        """Queue a provisioning run.

        Raises:
            QueueFullError: If no slot is free
        """
        job = ProvisioningJob(resource_id=resource_id, tenant_id=tenant_id, secret=secret)
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull as e:
            raise QueueFullError(
                f"Provisioning queue is full ({self._queue.maxsize} pending)"
            ) from e
        logger.info("Provisioning job queued", context={"resource_id": resource_id, "pending": self.pending})
        return job

    async def join(self) -> None:
        """Wait until every queued job has finished."""
        await self._queue.join()

    async def stop(self) -> None:
        """Finish every queued and running job, then stop the workers.

        Runs are not cut short. If ``stop`` itself is cancelled, running
        jobs are cancelled and roll back, and jobs still waiting in the
        queue are abandoned so their resources are deleted.
        """
        try:
            if self._queue.qsize() and not self._workers:
                self.start()
            await self._queue.join()
        finally:
            for task in self._workers:
                task.cancel()
            await asyncio.gather(*self._workers, return_exceptions=True)
            self._workers = []
            await self._abandon_pending("provisioning queue stopped")
        logger.info("Provisioning queue stopped")

    async def _abandon_pending(self, reason: str) -> None:
        while not self._queue.empty():
            job = self._queue.get_nowait()
            try:
                await self.orchestrator.abandon(job.resource_id, reason)
            except Exception as e:
                logger.error(
                    "Failed to abandon queued job",
                    context={"resource_id": job.resource_id},
                    error=e,
                )
            finally:
                self._queue.task_done()

    async def _work(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.orchestrator.provision_resource(job.resource_id, job.secret, job.tenant_id)
            except Exception as e:
                # Already recorded as FAILED in the status registry
                logger.warning(
                    "Provisioning job failed",
                    context={"worker": index, "resource_id": job.resource_id},
                    error=e,
                )
            finally:
                self._queue.task_done()
