from abc import ABC, abstractmethod
from typing import Any

from adworker.scraping.models import JobStatus, RenderResult


class BaseScrapingClient(ABC):
    """Contract for the external asynchronous scraping job service."""

    @abstractmethod
    async def submit_job(self, payload: dict[str, Any]) -> str:
        """Submit a scraping job and return its opaque id."""

    @abstractmethod
    async def get_job_status(self, job_id: str) -> JobStatus:
        """Return the current status of a job."""

    @abstractmethod
    async def get_parsed_result(self, job_id: str) -> dict[str, Any]:
        """Return the parsed (structured JSON) result of a finished job."""

    @abstractmethod
    async def get_raw_result(self, job_id: str) -> dict[str, Any] | str:
        """Return the raw result of a finished job."""

    @abstractmethod
    async def render_url(self, url: str, render_type: str) -> RenderResult:
        """Render a URL as "html" or "png"."""
