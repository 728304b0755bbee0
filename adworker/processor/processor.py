from collections.abc import Sequence
from pathlib import Path

from adworker.config.settings import Settings
from adworker.database.models import JobTrackingRecord
from adworker.database.repositories.job_tracking_repository import JobTrackingRepository
from adworker.database.repositories.queue_repository import QueueRepository
from adworker.database.repositories.rendering_repository import RenderingRepository
from adworker.database.repositories.serp_repository import SerpRepository
from adworker.logging.logger import Log
from adworker.processor.exceptions import QueueInvariantViolation
from adworker.processor.models import Job, Stage, StageStatus
from adworker.processor.pipeline import PipelineContext, PipelineStep
from adworker.processor.steps import (
    AdsExtractionStep,
    ApiCallStep,
    RenderingStep,
    SerpProcessingStep,
)
from adworker.rendering.artifact_store import ArtifactStore
from adworker.rendering.renderer import AdRenderer
from adworker.scraping.client_base import BaseScrapingClient
from adworker.scraping.oxylabs_client_adapter import OxylabsClientAdapter
from adworker.scraping.poller import ResultPoller
from adworker.scraping.retry import RetryPolicy


class Processor:
    """Drives one job through its pipeline stages.

    Pipeline: api_call -> serp_processing -> ads_extraction -> rendering.
    Each stage is recorded as in_progress before it runs and as success or
    failed after it, so the tracking record always shows the last stage
    that finished. The first failed stage ends the run.
    """

    def __init__(
        self,
        steps: Sequence[PipelineStep],
        tracking_repo: JobTrackingRepository,
        queue_repo: QueueRepository,
        serp_repo: SerpRepository,
    ) -> None:
        self._steps = list(steps)
        self._tracking_repo = tracking_repo
        self._queue_repo = queue_repo
        self._serp_repo = serp_repo

    async def process(self, job: Job) -> JobTrackingRecord:
        """Run the remaining stages of a job and return its final tracking record."""
        record = await self._tracking_repo.create(job)
        if record.status.is_terminal:
            Log.info(f"Job {job.id} is already '{record.status.value}', nothing to do")
            return record

        context = PipelineContext(job=job, tracking=record)
        completed = await self._restore(context, record)

        for step in self._steps:
            if step.stage in completed:
                continue
            if await self._queue_repo.is_cancelled(job.id):
                Log.warning(f"Job {job.id} was cancelled, stopping before {step.stage.value}")
                return await self._tracking_repo.get(job.id)

            record = await self._tracking_repo.update_stage(
                job.id, step.stage, StageStatus.IN_PROGRESS
            )
            if record.status.is_terminal:
                return record
            Log.info(
                f"Job {job.id}: stage {step.stage.value} started",
                job_id=job.id,
                stage=step.stage.value,
            )

            try:
                context = await step.run(context)
            except QueueInvariantViolation:
                raise
            except Exception as exc:
                Log.error(
                    f"Job {job.id}: stage {step.stage.value} failed: {exc}",
                    job_id=job.id,
                    stage=step.stage.value,
                )
                return await self._tracking_repo.update_stage(
                    job.id,
                    step.stage,
                    StageStatus.FAILED,
                    error_message=f"{step.stage.value}: {exc}",
                )

            if await self._queue_repo.is_cancelled(job.id):
                Log.warning(
                    f"Job {job.id} was cancelled during {step.stage.value}, discarding result"
                )
                return await self._tracking_repo.get(job.id)

            record = await self._tracking_repo.update_stage(
                job.id, step.stage, StageStatus.SUCCESS, **step.tracking_fields(context)
            )
            context.tracking = record

        Log.info(
            f"Job {job.id} finished with status '{record.status.value}'",
            job_id=job.id,
            status=record.status.value,
        )
        return record

    async def _restore(self, context: PipelineContext, record: JobTrackingRecord) -> set[Stage]:
        """Load stored state for stages that already succeeded.

        Stages from serp_processing on can be skipped only when the stored SERP
        exists. Otherwise the job restarts from the API call, since the
        scraping result itself is not kept anywhere else.
        """
        if record.serp_processing_status != StageStatus.SUCCESS:
            return set()
        serp = await self._serp_repo.find_by_job_id(context.job.id)
        if serp is None:
            Log.warning(f"Job {context.job.id} has no stored SERP, replaying from the API call")
            return set()
        context.serp = serp
        completed: set[Stage] = set()
        for stage in Stage:
            if record.stage_status(stage) != StageStatus.SUCCESS:
                break
            completed.add(stage)
        if Stage.ADS_EXTRACTION in completed:
            context.ads = await self._serp_repo.list_ads(serp.id, context.job.platform)
        Log.info(
            f"Job {context.job.id} resuming after "
            f"{', '.join(stage.value for stage in Stage if stage in completed)}"
        )
        return completed


def build_scraping_client(settings: Settings) -> OxylabsClientAdapter:
    return OxylabsClientAdapter(
        username=settings.scraper_username,
        password=settings.scraper_password,
        base_url=settings.scraper_base_url,
        realtime_url=settings.scraper_realtime_url,
        timeout_seconds=settings.scraper_timeout_seconds,
        render_timeout_seconds=settings.render_timeout_seconds,
    )


def build_poll_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.poll_max_attempts,
        base_delay=settings.poll_delay_seconds,
        backoff_multiplier=settings.transient_cooldown_multiplier,
    )


def build_processor(
    settings: Settings,
    client: BaseScrapingClient | None = None,
    renderings_root: Path | None = None,
) -> Processor:
    """Build a Processor with all required adapters."""
    client = client if client is not None else build_scraping_client(settings)
    tracking_repo = JobTrackingRepository()
    queue_repo = QueueRepository()
    serp_repo = SerpRepository()
    renderer = AdRenderer(
        client=client,
        rendering_repo=RenderingRepository(),
        store=ArtifactStore(renderings_root or Path(settings.renderings_root)),
        max_ads=settings.max_ads_to_render,
    )
    steps: list[PipelineStep] = [
        ApiCallStep(ResultPoller(client, build_poll_policy(settings))),
        SerpProcessingStep(serp_repo),
        AdsExtractionStep(serp_repo),
        RenderingStep(
            renderer,
            serp_repo,
            render_html=settings.render_html,
            render_png=settings.render_png,
        ),
    ]
    return Processor(
        steps=steps,
        tracking_repo=tracking_repo,
        queue_repo=queue_repo,
        serp_repo=serp_repo,
    )
