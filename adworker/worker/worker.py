import asyncio

import psycopg

from adworker.config.settings import Settings
from adworker.database.models import QueueRecord
from adworker.database.repositories.queue_repository import QueueRepository
from adworker.logging.logger import Log
from adworker.processor.exceptions import QueueInvariantViolation
from adworker.worker.job_runner import JobRunner


class Worker:
    """Poll loop: claim -> dispatch -> sleep when idle.

    In sequential mode one job reaches a terminal state before the next is
    claimed. In parallel mode up to ``pipeline_concurrency`` jobs are claimed
    and run concurrently.
    """

    def __init__(
        self,
        queue_repo: QueueRepository,
        job_runner: JobRunner,
        settings: Settings,
    ) -> None:
        self._queue_repo = queue_repo
        self._job_runner = job_runner
        self._settings = settings

    async def run(self, max_jobs: int | None = None) -> None:
        """Main poll loop. Runs forever until interrupted.

        If max_jobs is set, stop after processing that many jobs (for testing).
        """
        parallel = self._settings.pipeline_mode == "parallel"
        Log.info(f"Worker started in {self._settings.pipeline_mode} mode, polling for jobs")
        jobs_done = 0
        try:
            while max_jobs is None or jobs_done < max_jobs:
                if parallel:
                    limit = self._settings.pipeline_concurrency
                    if max_jobs is not None:
                        limit = min(limit, max_jobs - jobs_done)
                    batch = await self._claim_batch(limit)
                    if batch:
                        await self._run_batch(batch)
                        jobs_done += len(batch)
                        continue
                else:
                    record = await self._try_claim_job()
                    if record:
                        await self._job_runner.run(record)
                        jobs_done += 1
                        continue
                Log.debug("No jobs available, sleeping")
                await asyncio.sleep(self._settings.job_poll_interval_seconds)
        except KeyboardInterrupt:
            Log.info("Worker shutting down gracefully")

    async def _claim_batch(self, limit: int) -> list[QueueRecord]:
        batch: list[QueueRecord] = []
        while len(batch) < limit:
            record = await self._try_claim_job()
            if record is None:
                break
            batch.append(record)
        return batch

    async def _run_batch(self, batch: list[QueueRecord]) -> None:
        results = await asyncio.gather(
            *(self._job_runner.run(record) for record in batch),
            return_exceptions=True,
        )
        for record, result in zip(batch, results):
            if isinstance(result, QueueInvariantViolation):
                raise result
            if isinstance(result, BaseException):
                Log.error(f"Job {record.job_id} crashed: {result!r}", job_id=record.job_id)

    async def _try_claim_job(self) -> QueueRecord | None:
        """Attempt to claim the next submitted job. Gracefully handle DB errors."""
        try:
            return await self._queue_repo.claim_next()
        except psycopg.Error as exc:
            Log.warning(f"Database error, will retry: {exc}")
            return None
