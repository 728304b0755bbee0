from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from adworker.config.settings import Settings
from adworker.database.repositories.job_tracking_repository import JobTrackingRepository
from adworker.database.repositories.queue_repository import QueueRepository
from adworker.logging.logger import Log
from adworker.processor.models import Job, JobOptions, Platform, SearchRequest
from adworker.scraping.client_base import BaseScrapingClient
from adworker.scraping.exceptions import ScrapingError
from adworker.scraping.models import build_submission_payload
from adworker.scraping.retry import RetryPolicy


@dataclass
class BatchSubmission:
    jobs: list[Job] = field(default_factory=list)
    failures: list[tuple[SearchRequest, str]] = field(default_factory=list)


class JobSubmitter:
    """Submits searches to the scraping service and queues the resulting jobs."""

    def __init__(
        self,
        client: BaseScrapingClient,
        retry_policy: RetryPolicy,
        tracking_repo: JobTrackingRepository,
        queue_repo: QueueRepository,
        settings: Settings,
    ) -> None:
        self._client = client
        self._retry_policy = retry_policy
        self._tracking_repo = tracking_repo
        self._queue_repo = queue_repo
        self._settings = settings

    async def submit(self, request: SearchRequest) -> Job:
        """Submit one search, create its tracking record and enqueue it."""
        draft = Job(
            id="",
            query=request.query.strip(),
            location=(request.location or self._settings.default_location).strip(),
            platform=Platform(request.platform or self._settings.default_platform),
            options=request.options or JobOptions(
                render_html=self._settings.render_html,
                render_png=self._settings.render_png,
            ),
        )
        if not draft.query:
            raise ValueError("query must not be empty")
        payload = build_submission_payload(draft)
        job_id = await self._retry_policy.call(
            lambda: self._client.submit_job(payload),
            description=f"Submitting '{draft.query}' ({draft.location})",
        )
        job = replace(draft, id=job_id)
        await self._tracking_repo.create(job)
        await self._queue_repo.enqueue(job)
        Log.info(f"Submitted job {job.id}: '{job.query}' in {job.location}")
        return job

    async def submit_batch(self, requests: Iterable[SearchRequest]) -> BatchSubmission:
        """Submit searches one after another; a failed submission does not stop the batch."""
        batch = BatchSubmission()
        for request in requests:
            try:
                batch.jobs.append(await self.submit(request))
            except (ScrapingError, ValueError) as exc:
                Log.error(f"Could not submit '{request.query}': {exc}")
                batch.failures.append((request, str(exc)))
        Log.info(f"Batch submitted: {len(batch.jobs)} ok, {len(batch.failures)} failed")
        return batch


def build_submitter(settings: Settings, client: BaseScrapingClient | None = None) -> JobSubmitter:
    from adworker.processor.processor import build_scraping_client

    return JobSubmitter(
        client=client if client is not None else build_scraping_client(settings),
        retry_policy=RetryPolicy(
            max_attempts=settings.submit_max_attempts,
            base_delay=settings.submit_retry_delay_seconds,
            backoff_multiplier=settings.transient_cooldown_multiplier,
        ),
        tracking_repo=JobTrackingRepository(),
        queue_repo=QueueRepository(),
        settings=settings,
    )
