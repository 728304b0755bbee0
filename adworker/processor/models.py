from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Platform(str, Enum):
    GOOGLE = "google"
    BING = "bing"


class QueuePool(str, Enum):
    SUBMITTED = "submitted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Stage(str, Enum):
    """Pipeline stages, declared in execution order."""

    API_CALL = "api_call"
    SERP_PROCESSING = "serp_processing"
    ADS_EXTRACTION = "ads_extraction"
    RENDERING = "rendering"

    @property
    def column(self) -> str:
        return f"{self.value}_status"


class StageStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"


class AggregateStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {AggregateStatus.COMPLETED, AggregateStatus.PARTIAL_SUCCESS, AggregateStatus.FAILED}
)


@dataclass(frozen=True)
class JobOptions:
    """Request options sent to the scraping service and used by rendering."""

    device: str = "desktop"
    locale: str = "en-US"
    start_page: int = 1
    pages: int = 1
    user_agent_type: str = "desktop"
    render_html: bool = True
    render_png: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "device": self.device,
            "locale": self.locale,
            "start_page": self.start_page,
            "pages": self.pages,
            "user_agent_type": self.user_agent_type,
            "render_html": self.render_html,
            "render_png": self.render_png,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "JobOptions":
        """Build options from a stored mapping, ignoring unknown keys."""
        if not data:
            return cls()
        known = {key: data[key] for key in cls().to_dict() if key in data}
        return cls(**known)


@dataclass(frozen=True)
class Job:
    """One query+location request, identified by the scraping service's job id."""

    id: str
    query: str
    location: str
    platform: Platform = Platform.GOOGLE
    options: JobOptions = field(default_factory=JobOptions)
    submitted_at: datetime | None = None


@dataclass(frozen=True)
class SearchRequest:
    """A caller's request for one search, before it has a scraping job id."""

    query: str
    location: str | None = None
    platform: Platform | None = None
    options: JobOptions | None = None
