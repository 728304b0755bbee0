import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field

from adworker.database.models import AdRecord
from adworker.database.repositories.rendering_repository import RenderingRepository
from adworker.logging.logger import Log
from adworker.processor.models import Platform
from adworker.rendering.artifact_store import ArtifactStore
from adworker.scraping.client_base import BaseScrapingClient
from adworker.scraping.exceptions import RenderingUnavailableError, ScrapingError

LANDING_PAGE = "landing_page"


@dataclass
class RenderingSummary:
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        return self.attempted > 0 and self.succeeded == 0


class AdRenderer:
    """Captures landing page renderings for the first ``max_ads`` ads.

    A failed rendering is recorded on its own row and never raised. Only
    RenderingUnavailableError (the rendering service cannot be reached)
    propagates.
    """

    def __init__(
        self,
        client: BaseScrapingClient,
        rendering_repo: RenderingRepository,
        store: ArtifactStore,
        max_ads: int,
    ) -> None:
        self._client = client
        self._rendering_repo = rendering_repo
        self._store = store
        self._max_ads = max_ads

    async def render_ads(
        self,
        ads: Sequence[AdRecord],
        platform: Platform,
        render_types: Sequence[str],
    ) -> RenderingSummary:
        summary = RenderingSummary()
        for ad in list(ads)[: self._max_ads]:
            if not ad.destination_url:
                Log.debug(f"Ad {ad.id} has no destination URL, skipping rendering")
                continue
            for render_type in render_types:
                await self._render_one(ad, platform, render_type, summary)
        return summary

    async def _render_one(
        self,
        ad: AdRecord,
        platform: Platform,
        render_type: str,
        summary: RenderingSummary,
    ) -> None:
        rendering = await self._rendering_repo.create_rendering(
            ad.id, platform, render_type, LANDING_PAGE
        )
        summary.attempted += 1
        try:
            result = await self._client.render_url(ad.destination_url, render_type)
        except RenderingUnavailableError as exc:
            await self._rendering_repo.mark_failed(rendering.id, platform, str(exc))
            raise
        except ScrapingError as exc:
            await self._record_failure(rendering.id, ad, platform, render_type, str(exc), summary)
            return

        if not result.success:
            error = result.error or "Rendering failed"
            await self._record_failure(rendering.id, ad, platform, render_type, error, summary)
            return

        try:
            path = await asyncio.to_thread(
                self._store.save,
                Platform(platform).value,
                ad.id,
                LANDING_PAGE,
                render_type,
                result.content,
            )
        except OSError as exc:
            await self._record_failure(
                rendering.id, ad, platform, render_type, f"Could not store rendering: {exc}", summary
            )
            return

        await self._rendering_repo.mark_completed(
            rendering.id,
            platform,
            content_path=str(path),
            storage_url=self._store.storage_url(path),
            content_size=result.content_size,
        )
        summary.succeeded += 1
        Log.info(f"Rendered {render_type} for ad {ad.id} ({result.content_size} bytes)")

    async def _record_failure(
        self,
        rendering_id: int,
        ad: AdRecord,
        platform: Platform,
        render_type: str,
        error: str,
        summary: RenderingSummary,
    ) -> None:
        await self._rendering_repo.mark_failed(rendering_id, platform, error)
        summary.failed += 1
        summary.errors.append(f"ad {ad.id} {render_type}: {error}")
        Log.warning(f"Rendering {render_type} for ad {ad.id} failed: {error}")
