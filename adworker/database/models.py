from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from adworker.processor.models import (
    AggregateStatus,
    Job,
    QueuePool,
    Stage,
    StageStatus,
)


@dataclass
class QueueRecord:
    """Represents a row from the job_queue table."""

    job: Job
    pool: QueuePool
    queue_position: int
    moved_to_progress_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None

    @property
    def job_id(self) -> str:
        return self.job.id


@dataclass
class QueueBackup:
    """Immutable snapshot of a pool taken before it was mutated."""

    id: int
    pool: QueuePool
    snapshot: list[dict[str, Any]]
    reason: str
    created_at: datetime | None = None


@dataclass
class JobTrackingRecord:
    """Represents a row from the job_tracking table."""

    job_id: str
    query: str
    location: str
    status: AggregateStatus = AggregateStatus.PENDING
    api_call_status: StageStatus = StageStatus.PENDING
    serp_processing_status: StageStatus = StageStatus.PENDING
    ads_extraction_status: StageStatus = StageStatus.PENDING
    rendering_status: StageStatus = StageStatus.PENDING
    error_message: str | None = None
    new_ads_count: int = 0
    new_advertisers_count: int = 0
    serp_id: int | None = None
    started_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None

    def stage_status(self, stage: Stage) -> StageStatus:
        return getattr(self, stage.column)

    def stage_statuses(self) -> dict[Stage, StageStatus]:
        return {stage: self.stage_status(stage) for stage in Stage}


@dataclass
class JobStats:
    """Counts of tracking records per aggregate status and per stage status."""

    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_stage: dict[str, dict[str, int]] = field(default_factory=dict)


@dataclass
class SerpRecord:
    """Represents a row from the serp_results table."""

    id: int
    job_id: str
    query: str
    location: str
    platform: str
    content: dict[str, Any] | None = None
    raw_html: str | None = None
    ads_count: int = 0
    organic_count: int = 0
    local_count: int = 0
    timestamp: datetime | None = None

    @property
    def payload(self) -> dict[str, Any] | str | None:
        """Stored page payload in the form it was received."""
        return self.content if self.content is not None else self.raw_html


@dataclass
class AdRecord:
    """Represents a row from google_ads / bing_ads."""

    id: int
    serp_id: int
    platform: str
    position: int
    position_overall: int
    ad_type: str
    title: str
    description: str = ""
    display_url: str = ""
    destination_url: str = ""
    advertiser_domain: str = "unknown"
    sitelinks: list[dict[str, Any]] = field(default_factory=list)
    extensions: list[str] = field(default_factory=list)


@dataclass
class AdRenderingRecord:
    """Represents a row from google_ad_renderings / bing_ad_renderings."""

    id: int
    ad_id: int
    rendering_type: str
    rendering_target: str
    status: str = "pending"
    content_path: str | None = None
    storage_url: str | None = None
    content_size: int | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass
class AdInsertSummary:
    """Result of persisting the ads of one SERP."""

    ads: list[AdRecord] = field(default_factory=list)
    new_ads_count: int = 0
    new_advertisers_count: int = 0
