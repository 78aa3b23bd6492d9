"""Background index job queue.

Write-side mutations only enqueue jobs; a single asyncio loop drains the
queue in priority-ordered batches and runs each job sequentially. Failed
jobs are demoted to low priority and retried until max_attempts, then
dropped with an error log.

The default store keeps jobs in process memory, so pending jobs are lost
on restart. ``IndexJobWorker.process_all_unindexed`` is the recovery scan
that heals this and runs at boot and, optionally, on a schedule.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum

import pytz
from pydantic import BaseModel, Field

from services.asset_index.IndexingService import IndexingService
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.helper.HelperConfig import HelperConfig


class JobType(str, Enum):
    ADD = "add"
    UPDATE = "update"
    REMOVE = "remove"


class JobPriority(str, Enum):
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


PRIORITY_RANK = {JobPriority.HIGH: 0, JobPriority.NORMAL: 1, JobPriority.LOW: 2}


class IndexJob(BaseModel):
    id: str
    type: JobType
    asset_id: str
    priority: JobPriority = JobPriority.NORMAL
    attempts: int = 0
    max_attempts: int = 3
    created_at: datetime = Field(default_factory=lambda: datetime.now(pytz.utc))

    @classmethod
    def create(cls, job_type: JobType, asset_id: str, priority: JobPriority, max_attempts: int) -> "IndexJob":
        return cls(
            id=f"{job_type.value}-{asset_id}-{int(time.time() * 1000)}",
            type=job_type,
            asset_id=asset_id,
            priority=priority,
            max_attempts=max_attempts,
        )


##########################################
############### JOB STORE ################
##########################################

class JobStore(ABC):
    """Holds pending index jobs. Implementations decide about durability."""

    @abstractmethod
    def push(self, job: IndexJob) -> None:
        pass

    @abstractmethod
    def take_batch(self, size: int) -> list[IndexJob]:
        """Remove and return up to size jobs, highest priority first, FIFO within a priority."""
        pass

    @abstractmethod
    def pending(self) -> list[IndexJob]:
        pass

    def size(self) -> int:
        return len(self.pending())

    def has_pending(self, asset_id: str, job_type: JobType | None = None) -> bool:
        return any(
            job.asset_id == asset_id and (job_type is None or job.type == job_type)
            for job in self.pending()
        )


class InMemoryJobStore(JobStore):
    def __init__(self):
        self._jobs: list[IndexJob] = []

    def push(self, job: IndexJob) -> None:
        self._jobs.append(job)

    def take_batch(self, size: int) -> list[IndexJob]:
        # stable sort of the whole queue, then slice
        self._jobs.sort(key=lambda job: PRIORITY_RANK[job.priority])
        batch, self._jobs = self._jobs[:size], self._jobs[size:]
        return batch

    def pending(self) -> list[IndexJob]:
        return list(self._jobs)

    def size(self) -> int:
        return len(self._jobs)


##########################################
################ WORKER ##################
##########################################

class IndexJobWorker:
    """Drains index jobs from a JobStore into the IndexingService."""

    def __init__(
        self,
        helper_config: HelperConfig,
        indexing_service: IndexingService,
        store_client: StoreClientInterface,
        job_store: JobStore | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._indexing_service = indexing_service
        self._store_client = store_client
        self._job_store = job_store or InMemoryJobStore()

        self.batch_size = int(helper_config.get_number_val("INDEX_JOB_BATCH_SIZE", default=10))
        self.interval = float(helper_config.get_number_val("INDEX_JOB_INTERVAL", default=5))
        self.max_attempts = int(helper_config.get_number_val("INDEX_JOB_MAX_ATTEMPTS", default=3))
        self.recovery_interval = float(helper_config.get_number_val("INDEX_RECOVERY_INTERVAL", default=0))

        self._running = False
        self._task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None
        self._counters = {"processed": 0, "retried": 0, "dropped": 0}

    ##########################################
    ################ QUEUE ###################
    ##########################################

    def enqueue(self, job_type: JobType | str, asset_id: str, priority: JobPriority | str = JobPriority.NORMAL) -> IndexJob:
        """Add a job for an asset to the queue.

        Args:
            job_type (JobType | str): "add", "update" or "remove".
            asset_id (str): The target asset.
            priority (JobPriority | str): "high", "normal" or "low".

        Returns:
            IndexJob: The queued job.
        """
        job = IndexJob.create(JobType(job_type), str(asset_id), JobPriority(priority), self.max_attempts)
        self._job_store.push(job)
        self.logging.debug("Queued index job %s (priority=%s)", job.id, job.priority.value)
        return job

    async def process_batch(self) -> int:
        """Run one priority-ordered batch of jobs, sequentially.

        Returns:
            int: The number of jobs taken from the queue.
        """
        batch = self._job_store.take_batch(self.batch_size)
        for job in batch:
            try:
                await self.process_job(job)
                self._counters["processed"] += 1
            except Exception as exc:
                self._handle_failure(job, exc)
        return len(batch)

    def _handle_failure(self, job: IndexJob, exc: Exception) -> None:
        job.attempts += 1
        if job.attempts < job.max_attempts:
            job.priority = JobPriority.LOW
            self._job_store.push(job)
            self._counters["retried"] += 1
            self.logging.warning("Index job %s failed (attempt %d of %d), retrying: %s", job.id, job.attempts, job.max_attempts, exc)
        else:
            self._counters["dropped"] += 1
            self.logging.error("Index job %s dropped after %d attempts: %s", job.id, job.attempts, exc)

    async def process_job(self, job: IndexJob) -> None:
        """Execute a single job.

        Raises:
            Exception: Propagated from the store or the indexing service.
        """
        self.logging.debug("Processing index job %s", job.id)
        if job.type == JobType.REMOVE:
            # the asset is usually gone already
            await self._indexing_service.do_remove_asset(job.asset_id)
            return

        asset = await self._store_client.do_fetch_asset(job.asset_id)
        if asset is None:
            self.logging.info("Asset %s not found, skipping job %s", job.asset_id, job.id)
            return

        if job.type == JobType.ADD:
            written = await self._indexing_service.do_add_asset(asset)
        else:
            written = await self._indexing_service.do_update_asset(asset)

        if written:
            await self._store_client.do_mark_indexed(asset.id, datetime.now(pytz.utc))

    async def drain(self) -> int:
        """Process batches until the queue is empty, retries included.

        Returns:
            int: The number of jobs executed.
        """
        executed = 0
        while self._job_store.size():
            executed += await self.process_batch()
        return executed

    ##########################################
    ############### RECOVERY #################
    ##########################################

    async def process_all_unindexed(self) -> int:
        """Queue an "add" job at low priority for every asset without the indexed flag.

        Assets that already have a pending job are skipped.

        Returns:
            int: The number of jobs queued.
        """
        assets = await self._store_client.do_fetch_unindexed_assets()
        queued = 0
        for asset in assets:
            if self._job_store.has_pending(asset.id):
                continue
            self.enqueue(JobType.ADD, asset.id, JobPriority.LOW)
            queued += 1
        self.logging.info("Recovery scan: %d unindexed assets found, %d queued.", len(assets), queued)
        return queued

    async def reindex_all(self) -> int:
        """Queue an "update" job at low priority for every asset.

        Returns:
            int: The number of jobs queued.
        """
        assets = await self._store_client.do_fetch_all_assets()
        for asset in assets:
            self.enqueue(JobType.UPDATE, asset.id, JobPriority.LOW)
        self.logging.info("Re-index: %d assets queued.", len(assets))
        return len(assets)

    ##########################################
    ################# LOOP ###################
    ##########################################

    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background loop. Calling it twice has no effect."""
        if self._running:
            return
        self._running = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run())
        self.logging.info("Index job worker started (batch=%d, interval=%ss).", self.batch_size, self.interval)

    async def stop(self) -> None:
        """Stop the loop after the batch that is currently running."""
        if not self._running:
            return
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        self.logging.info("Index job worker stopped.")

    async def _run(self) -> None:
        last_recovery = time.monotonic()
        while self._running:
            try:
                if self._job_store.size():
                    await self.process_batch()
                if self.recovery_interval and time.monotonic() - last_recovery >= self.recovery_interval:
                    last_recovery = time.monotonic()
                    await self.process_all_unindexed()
            except Exception as exc:
                self.logging.error("Error in index job loop: %s", exc)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    def get_status(self) -> dict:
        jobs = self._job_store.pending()
        return {
            "running": self._running,
            "queue_size": len(jobs),
            "jobs": [
                {
                    "id": job.id,
                    "type": job.type.value,
                    "asset_id": job.asset_id,
                    "priority": job.priority.value,
                    "attempts": job.attempts,
                    "created_at": job.created_at.isoformat(),
                }
                for job in jobs
            ],
            **self._counters,
        }
