import base64
import binascii
from typing import Any, ClassVar

import httpx

from adworker.logging.logger import Log
from adworker.scraping.client_base import BaseScrapingClient
from adworker.scraping.exceptions import (
    InvalidRenderTargetError,
    RenderingUnavailableError,
    ResultUnavailableError,
    ScrapingError,
    ServiceUnreachableError,
    SubmissionError,
    TransientTransportError,
)
from adworker.scraping.models import JobStatus, RenderResult


class OxylabsClientAdapter(BaseScrapingClient):
    """Scraping client for the Oxylabs push-pull and realtime APIs.

    Every call opens a fresh ``httpx.AsyncClient`` so that a connection broken
    by a transient failure is never reused by the next attempt.
    """

    RETRYABLE_STATUS_CODES: ClassVar[frozenset[int]] = frozenset({429, 500, 502, 503, 504})
    UNSUPPORTED_RENDER_HOSTS: ClassVar[frozenset[str]] = frozenset(
        {"localhost", "127.0.0.1", "example.com"}
    )
    RENDER_TYPES: ClassVar[frozenset[str]] = frozenset({"html", "png"})

    def __init__(
        self,
        *,
        username: str,
        password: str,
        base_url: str,
        realtime_url: str,
        timeout_seconds: float,
        render_timeout_seconds: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._auth = httpx.BasicAuth(username, password)
        self._base_url = base_url.rstrip("/")
        self._realtime_url = realtime_url.rstrip("/")
        self._timeout = timeout_seconds
        self._render_timeout = render_timeout_seconds
        self._transport = transport

    async def submit_job(self, payload: dict[str, Any]) -> str:
        data = await self._request_json("POST", f"{self._base_url}/queries", json=payload)
        job_id = data.get("id") if isinstance(data, dict) else None
        if not job_id:
            raise SubmissionError(f"Scraping service returned no job id: {data!r}")
        return str(job_id)

    async def get_job_status(self, job_id: str) -> JobStatus:
        data = await self._request_json("GET", f"{self._base_url}/queries/{job_id}")
        status = str(data.get("status", "")).strip().lower()
        return JobStatus(job_id=job_id, status=status)

    async def get_parsed_result(self, job_id: str) -> dict[str, Any]:
        data = await self._request_json(
            "GET",
            f"{self._base_url}/queries/{job_id}/results",
            params={"type": "parsed"},
        )
        content = self._first_result_content(job_id, data)
        if not isinstance(content, dict):
            raise ResultUnavailableError(f"Parsed result for job {job_id} is not ready")
        return content

    async def get_raw_result(self, job_id: str) -> dict[str, Any] | str:
        data = await self._request_json("GET", f"{self._base_url}/queries/{job_id}/results")
        return self._first_result_content(job_id, data)

    async def render_url(self, url: str, render_type: str) -> RenderResult:
        if render_type not in self.RENDER_TYPES:
            raise ValueError(f"Unsupported render type '{render_type}'")
        target = self.normalize_render_url(url)
        payload = {"source": "universal", "url": target, "render": render_type}
        try:
            data = await self._request_json(
                "POST",
                f"{self._realtime_url}/queries",
                json=payload,
                timeout=self._render_timeout,
            )
        except ServiceUnreachableError as exc:
            raise RenderingUnavailableError(f"Rendering service unreachable: {exc}") from exc
        except ScrapingError as exc:
            return RenderResult(success=False, render_type=render_type, url=target, error=str(exc))

        results = data.get("results") or []
        content = results[0].get("content") if results and isinstance(results[0], dict) else None
        if not isinstance(content, str) or not content:
            return RenderResult(
                success=False,
                render_type=render_type,
                url=target,
                error="No content in rendering response",
            )
        if render_type == "png":
            try:
                body = base64.b64decode(content, validate=True)
            except (binascii.Error, ValueError) as exc:
                return RenderResult(
                    success=False,
                    render_type=render_type,
                    url=target,
                    error=f"Invalid base64 image data: {exc}",
                )
        else:
            body = content.encode("utf-8")
        return RenderResult(success=True, render_type=render_type, url=target, content=body)

    @classmethod
    def normalize_render_url(cls, url: str) -> str:
        """Prefix a scheme when missing and reject hosts that cannot be rendered."""
        candidate = (url or "").strip()
        if not candidate:
            raise InvalidRenderTargetError("Empty URL")
        if "://" not in candidate:
            candidate = f"https://{candidate}"
        try:
            host = httpx.URL(candidate).host.lower()
        except httpx.InvalidURL as exc:
            raise InvalidRenderTargetError(f"Invalid URL '{url}': {exc}") from exc
        if not host or ("." not in host and host != "localhost"):
            raise InvalidRenderTargetError(f"Invalid URL '{url}'")
        if host in cls.UNSUPPORTED_RENDER_HOSTS or host.endswith(".example.com"):
            raise InvalidRenderTargetError(f"Unsupported render host '{host}'")
        return candidate

    def _first_result_content(self, job_id: str, data: Any) -> dict[str, Any] | str:
        results = data.get("results") if isinstance(data, dict) else None
        if not results or not isinstance(results[0], dict):
            raise ResultUnavailableError(f"No results returned for job {job_id}")
        content = results[0].get("content")
        if content in (None, "", {}):
            raise ResultUnavailableError(f"Empty result content for job {job_id}")
        return content

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                auth=self._auth,
                timeout=timeout if timeout is not None else self._timeout,
                transport=self._transport,
                headers={"Connection": "close"},
            ) as client:
                response = await client.request(method, url, json=json, params=params)
        except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
            raise ServiceUnreachableError(f"Scraping service unreachable: {exc}") from exc
        except (
            httpx.ReadError,
            httpx.WriteError,
            httpx.RemoteProtocolError,
            httpx.TimeoutException,
        ) as exc:
            raise TransientTransportError(f"Scraping service transport error: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ScrapingError(f"Scraping service request failed: {exc}") from exc

        if response.status_code in self.RETRYABLE_STATUS_CODES:
            raise TransientTransportError(
                f"Scraping service returned HTTP {response.status_code} for {method} {url}"
            )
        if response.is_error:
            raise ScrapingError(
                f"Scraping service returned HTTP {response.status_code} for {method} {url}: "
                f"{response.text[:200]}"
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise ScrapingError(f"Scraping service returned invalid JSON for {url}") from exc
        Log.debug(f"{method} {url} -> HTTP {response.status_code}")
        if not isinstance(data, dict):
            raise ScrapingError(f"Unexpected response shape from {url}")
        return data
