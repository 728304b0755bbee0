from dataclasses import dataclass
from typing import Any

from adworker.processor.models import Job, Platform

COMPLETED_STATUSES = frozenset({"completed", "done"})
FAILED_STATUSES = frozenset({"failed", "faulted", "error"})

PLATFORM_SOURCES: dict[Platform, str] = {
    Platform.GOOGLE: "google_ads",
    Platform.BING: "bing_search",
}


@dataclass(frozen=True)
class JobStatus:
    """Status snapshot returned by the job-status endpoint."""

    job_id: str
    status: str

    @property
    def is_completed(self) -> bool:
        return self.status in COMPLETED_STATUSES

    @property
    def is_failed(self) -> bool:
        return self.status in FAILED_STATUSES


@dataclass(frozen=True)
class ResultPayload:
    """Result body of a finished scraping job."""

    job_id: str
    status: str
    body: dict[str, Any] | str
    representation: str  # "parsed" or "raw"
    attempts: int


@dataclass(frozen=True)
class RenderResult:
    """Outcome of one rendering request."""

    success: bool
    render_type: str
    url: str
    content: bytes = b""
    error: str | None = None

    @property
    def content_size(self) -> int:
        return len(self.content)


def build_submission_payload(job: Job) -> dict[str, Any]:
    """Build the scraping service request body for a job."""
    return {
        "source": PLATFORM_SOURCES[job.platform],
        "query": job.query,
        "geo_location": job.location,
        "device": job.options.device,
        "locale": job.options.locale,
        "start_page": job.options.start_page,
        "pages": job.options.pages,
        "user_agent_type": job.options.user_agent_type,
        "parse": True,
        "render": "html",
    }
