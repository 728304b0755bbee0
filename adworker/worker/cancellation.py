from adworker.database.repositories.job_tracking_repository import JobTrackingRepository
from adworker.database.repositories.queue_repository import QueueRepository
from adworker.logging.logger import Log

DEFAULT_CANCEL_REASON = "Cancelled by user"


async def cancel_batch(
    queue_repo: QueueRepository,
    tracking_repo: JobTrackingRepository,
    reason: str = DEFAULT_CANCEL_REASON,
) -> list[str]:
    """Cancel every submitted and in-progress job and fail its tracking record.

    In-flight polls are left running; the processor discards their result
    when it next checks the queue.

    The queue and tracking updates commit in separate transactions. A job
    that finishes between them keeps its terminal tracking status while its
    queue row still carries ``cancelled_at``; ``mark_cancelled`` only fails
    records that are still pending or in progress, so a finished job is
    never reported as cancelled.
    """
    job_ids = await queue_repo.cancel_active(reason)
    failed = await tracking_repo.mark_cancelled(job_ids, reason)
    Log.warning(f"Batch cancelled: {len(job_ids)} job(s), {failed} tracking record(s) failed")
    return job_ids
