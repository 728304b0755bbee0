from adworker.database.repositories.serp_repository import SerpRepository
from adworker.extraction.extractor import extract_from_payload
from adworker.logging.logger import Log
from adworker.processor.exceptions import StageError
from adworker.processor.models import Stage
from adworker.processor.pipeline import PipelineContext, PipelineStep
from adworker.rendering.renderer import AdRenderer
from adworker.scraping.exceptions import RenderingUnavailableError
from adworker.scraping.poller import ResultPoller


class ApiCallStep(PipelineStep):
    stage = Stage.API_CALL

    def __init__(
        self,
        poller: ResultPoller,
        max_attempts: int | None = None,
        delay_seconds: float | None = None,
    ) -> None:
        self._poller = poller
        self._max_attempts = max_attempts
        self._delay_seconds = delay_seconds

    async def run(self, context: PipelineContext) -> PipelineContext:
        context.result = await self._poller.await_result(
            context.job.id,
            max_attempts=self._max_attempts,
            delay_seconds=self._delay_seconds,
        )
        Log.info(
            f"Job {context.job.id}: retrieved {context.result.representation} result "
            f"after {context.result.attempts} attempt(s)"
        )
        return context


class SerpProcessingStep(PipelineStep):
    stage = Stage.SERP_PROCESSING

    def __init__(self, serp_repo: SerpRepository) -> None:
        self._serp_repo = serp_repo

    async def run(self, context: PipelineContext) -> PipelineContext:
        if context.result is None:
            raise StageError("No scraping result to store")
        context.extraction = extract_from_payload(context.result.body)
        context.serp = await self._serp_repo.create_serp_result(
            context.job, context.result, context.extraction
        )
        Log.info(
            f"Job {context.job.id}: stored SERP {context.serp.id} "
            f"({context.serp.ads_count} ads, {context.serp.organic_count} organic, "
            f"{context.serp.local_count} local)"
        )
        return context

    def tracking_fields(self, context: PipelineContext) -> dict[str, object]:
        return {"serp_id": context.serp.id} if context.serp else {}


class AdsExtractionStep(PipelineStep):
    """Extract ads from the stored SERP payload and persist them."""

    stage = Stage.ADS_EXTRACTION

    def __init__(self, serp_repo: SerpRepository) -> None:
        self._serp_repo = serp_repo

    async def run(self, context: PipelineContext) -> PipelineContext:
        if context.serp is None:
            raise StageError("No stored SERP result to extract ads from")
        extraction = extract_from_payload(context.serp.payload)
        context.extraction = extraction
        summary = await self._serp_repo.insert_ads(
            context.serp.id, context.job.platform, extraction
        )
        context.ads = summary.ads
        context.new_ads_count = summary.new_ads_count
        context.new_advertisers_count = summary.new_advertisers_count
        return context

    def tracking_fields(self, context: PipelineContext) -> dict[str, object]:
        return {
            "new_ads_count": context.new_ads_count,
            "new_advertisers_count": context.new_advertisers_count,
        }


class RenderingStep(PipelineStep):
    """Best-effort landing page renderings for the stored ads.

    Fails the stage only when the rendering service is unreachable or every
    attempted rendering failed.
    """

    stage = Stage.RENDERING

    def __init__(
        self,
        renderer: AdRenderer,
        serp_repo: SerpRepository,
        *,
        render_html: bool = True,
        render_png: bool = True,
    ) -> None:
        self._renderer = renderer
        self._serp_repo = serp_repo
        self._render_html = render_html
        self._render_png = render_png

    async def run(self, context: PipelineContext) -> PipelineContext:
        options = context.job.options
        render_types = [
            render_type
            for render_type, enabled in (
                ("html", self._render_html and options.render_html),
                ("png", self._render_png and options.render_png),
            )
            if enabled
        ]
        if not render_types:
            Log.info(f"Job {context.job.id}: rendering disabled")
            return context
        if not context.ads and context.serp is not None:
            context.ads = await self._serp_repo.list_ads(context.serp.id, context.job.platform)
        if not context.ads:
            Log.info(f"Job {context.job.id}: no ads to render")
            return context

        try:
            summary = await self._renderer.render_ads(
                context.ads, context.job.platform, render_types
            )
        except RenderingUnavailableError as exc:
            raise StageError(f"Rendering service unavailable: {exc}") from exc
        context.rendering = summary
        if summary.all_failed:
            raise StageError(
                f"All {summary.attempted} rendering(s) failed: {'; '.join(summary.errors[:3])}"
            )
        Log.info(
            f"Job {context.job.id}: {summary.succeeded}/{summary.attempted} rendering(s) succeeded"
        )
        return context
