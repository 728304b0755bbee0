import asyncio

from adworker.config.settings import Settings
from adworker.database.connection import close_pool, init_pool
from adworker.database.repositories.job_tracking_repository import JobTrackingRepository
from adworker.database.repositories.queue_repository import QueueRepository
from adworker.logging.logger import Log
from adworker.processor.processor import build_processor
from adworker.worker.job_runner import JobRunner
from adworker.worker.worker import Worker


async def main(settings: Settings | None = None) -> None:
    """Entry point: initialize pool -> build dependencies -> start worker loop."""
    settings = settings if settings is not None else Settings()
    Log.configure(settings.log_level)
    await init_pool(settings)

    try:
        processor = build_processor(settings)
        queue_repo = QueueRepository()
        job_runner = JobRunner(processor, queue_repo, JobTrackingRepository())
        worker = Worker(queue_repo, job_runner, settings)
        await worker.run()
    finally:
        await close_pool()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        Log.info("Worker stopped")


if __name__ == "__main__":
    run()
