import psycopg

from adworker.database.models import JobTrackingRecord, QueueRecord
from adworker.database.repositories.job_tracking_repository import JobTrackingRepository
from adworker.database.repositories.queue_repository import QueueRepository
from adworker.logging.logger import Log
from adworker.processor.exceptions import QueueInvariantViolation
from adworker.processor.processor import Processor


class JobRunner:
    """Run one claimed job, record unexpected errors, and move it to completed."""

    def __init__(
        self,
        processor: Processor,
        queue_repo: QueueRepository,
        tracking_repo: JobTrackingRepository,
    ) -> None:
        self._processor = processor
        self._queue_repo = queue_repo
        self._tracking_repo = tracking_repo

    async def run(self, record: QueueRecord) -> JobTrackingRecord | None:
        """Execute a single job with error handling.

        QueueInvariantViolation is logged and re-raised; any other error is
        recorded on the job's tracking record.
        """
        job = record.job
        Log.info(f"Running job {job.id}", job_id=job.id, query=job.query, location=job.location)
        try:
            tracking = await self._processor.process(job)
            await self._queue_repo.move_to_completed(job.id)
            return tracking
        except QueueInvariantViolation as exc:
            Log.error(f"Queue invariant violated for job {job.id}, crash recovery required: {exc}")
            raise
        except Exception as exc:
            await self._handle_failure(record, exc)
            return None

    async def _handle_failure(self, record: QueueRecord, exc: Exception) -> None:
        """Fail the tracking record and release the job from in_progress."""
        job_id = record.job_id
        Log.exception(f"Job {job_id} failed: {exc}", job_id=job_id)
        try:
            await self._tracking_repo.mark_failed(job_id, str(exc))
            await self._queue_repo.move_to_completed(job_id)
        except QueueInvariantViolation as invariant:
            Log.error(
                f"Queue invariant violated for job {job_id}, crash recovery required: {invariant}"
            )
            raise
        except psycopg.Error as db_exc:
            Log.error(f"Could not record failure of job {job_id}: {db_exc}")
