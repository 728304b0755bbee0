from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar

from adworker.database.models import AdRecord, JobTrackingRecord, SerpRecord
from adworker.extraction.models import ExtractedAdsData
from adworker.processor.models import Job, Stage
from adworker.rendering.renderer import RenderingSummary
from adworker.scraping.models import ResultPayload


@dataclass(slots=True)
class PipelineContext:
    job: Job
    tracking: JobTrackingRecord | None = None
    result: ResultPayload | None = None
    extraction: ExtractedAdsData | None = None
    serp: SerpRecord | None = None
    ads: list[AdRecord] = field(default_factory=list)
    new_ads_count: int = 0
    new_advertisers_count: int = 0
    rendering: RenderingSummary | None = None


class PipelineStep(ABC):
    stage: ClassVar[Stage]

    @abstractmethod
    async def run(self, context: PipelineContext) -> PipelineContext:
        raise NotImplementedError

    def tracking_fields(self, context: PipelineContext) -> dict[str, object]:
        """Extra tracking columns to write when the stage succeeds."""
        return {}
