import base64
import json
from collections.abc import Callable

import httpx
import pytest

from adworker.scraping.exceptions import (
    InvalidRenderTargetError,
    RenderingUnavailableError,
    ResultUnavailableError,
    ScrapingError,
    ServiceUnreachableError,
    SubmissionError,
    TransientTransportError,
)
from adworker.scraping.oxylabs_client_adapter import OxylabsClientAdapter

BASE_URL = "https://data.test/v1"
REALTIME_URL = "https://realtime.test/v1"


def _make_adapter(
    handler: Callable[[httpx.Request], httpx.Response],
) -> OxylabsClientAdapter:
    return OxylabsClientAdapter(
        username="user",
        password="pass",
        base_url=BASE_URL,
        realtime_url=REALTIME_URL,
        timeout_seconds=10,
        render_timeout_seconds=30,
        transport=httpx.MockTransport(handler),
    )


class TestSubmitJob:
    @pytest.mark.asyncio
    async def test_returns_job_id(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "7101", "status": "pending"})

        adapter = _make_adapter(handler)
        job_id = await adapter.submit_job({"source": "google_ads", "query": "plumbers"})

        assert job_id == "7101"
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == f"{BASE_URL}/queries"
        assert request.headers["Authorization"].startswith("Basic ")
        assert request.headers["Connection"] == "close"
        assert json.loads(request.content)["query"] == "plumbers"

    @pytest.mark.asyncio
    async def test_raises_when_id_missing(self) -> None:
        adapter = _make_adapter(lambda request: httpx.Response(200, json={"status": "pending"}))

        with pytest.raises(SubmissionError, match="no job id"):
            await adapter.submit_job({})


class TestJobStatus:
    @pytest.mark.asyncio
    async def test_normalizes_status(self) -> None:
        adapter = _make_adapter(lambda request: httpx.Response(200, json={"status": " Done "}))

        status = await adapter.get_job_status("7101")

        assert status.status == "done"
        assert status.is_completed


class TestResults:
    @pytest.mark.asyncio
    async def test_parsed_result_requests_parsed_type(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"results": [{"content": {"results": {"paid": []}}}]})

        adapter = _make_adapter(handler)
        content = await adapter.get_parsed_result("7101")

        assert content == {"results": {"paid": []}}
        assert seen[0].url.path == "/v1/queries/7101/results"
        assert seen[0].url.params["type"] == "parsed"

    @pytest.mark.asyncio
    async def test_parsed_result_rejects_html_body(self) -> None:
        adapter = _make_adapter(
            lambda request: httpx.Response(200, json={"results": [{"content": "<html></html>"}]})
        )

        with pytest.raises(ResultUnavailableError):
            await adapter.get_parsed_result("7101")

    @pytest.mark.asyncio
    async def test_raw_result_returns_html(self) -> None:
        adapter = _make_adapter(
            lambda request: httpx.Response(200, json={"results": [{"content": "<html></html>"}]})
        )

        assert await adapter.get_raw_result("7101") == "<html></html>"

    @pytest.mark.asyncio
    async def test_empty_results_are_unavailable(self) -> None:
        adapter = _make_adapter(lambda request: httpx.Response(200, json={"results": []}))

        with pytest.raises(ResultUnavailableError):
            await adapter.get_raw_result("7101")


class TestErrorMapping:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [429, 500, 503])
    async def test_retryable_status_is_transient(self, status_code: int) -> None:
        adapter = _make_adapter(lambda request: httpx.Response(status_code))

        with pytest.raises(TransientTransportError):
            await adapter.get_job_status("7101")

    @pytest.mark.asyncio
    async def test_client_error_is_not_transient(self) -> None:
        adapter = _make_adapter(lambda request: httpx.Response(401, text="unauthorized"))

        with pytest.raises(ScrapingError, match="HTTP 401") as exc_info:
            await adapter.get_job_status("7101")
        assert not isinstance(exc_info.value, TransientTransportError)

    @pytest.mark.asyncio
    async def test_connect_error_is_unreachable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        adapter = _make_adapter(handler)

        with pytest.raises(ServiceUnreachableError):
            await adapter.get_job_status("7101")

    @pytest.mark.asyncio
    async def test_read_timeout_is_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        adapter = _make_adapter(handler)

        with pytest.raises(TransientTransportError):
            await adapter.get_job_status("7101")

    @pytest.mark.asyncio
    async def test_remote_protocol_error_is_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.RemoteProtocolError("peer closed connection", request=request)

        adapter = _make_adapter(handler)

        with pytest.raises(TransientTransportError):
            await adapter.get_job_status("7101")

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        adapter = _make_adapter(lambda request: httpx.Response(200, text="not json"))

        with pytest.raises(ScrapingError, match="invalid JSON"):
            await adapter.get_job_status("7101")


class TestRenderUrl:
    @pytest.mark.asyncio
    async def test_png_content_is_decoded(self) -> None:
        image = b"\x89PNG\r\n\x1a\nfake"
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json={"results": [{"content": base64.b64encode(image).decode()}]}
            )

        adapter = _make_adapter(handler)
        result = await adapter.render_url("www.bostonplumbing.com", "png")

        assert result.success
        assert result.content == image
        assert result.content_size == len(image)
        assert result.url == "https://www.bostonplumbing.com"
        assert str(seen[0].url) == f"{REALTIME_URL}/queries"
        assert json.loads(seen[0].content) == {
            "source": "universal",
            "url": "https://www.bostonplumbing.com",
            "render": "png",
        }

    @pytest.mark.asyncio
    async def test_html_content_is_encoded(self) -> None:
        adapter = _make_adapter(
            lambda request: httpx.Response(200, json={"results": [{"content": "<html>ok</html>"}]})
        )

        result = await adapter.render_url("https://www.fastfix.com/", "html")

        assert result.success
        assert result.content == b"<html>ok</html>"

    @pytest.mark.asyncio
    async def test_error_response_is_a_failed_result(self) -> None:
        adapter = _make_adapter(lambda request: httpx.Response(500))

        result = await adapter.render_url("https://www.fastfix.com/", "html")

        assert not result.success
        assert "HTTP 500" in (result.error or "")

    @pytest.mark.asyncio
    async def test_missing_content_is_a_failed_result(self) -> None:
        adapter = _make_adapter(lambda request: httpx.Response(200, json={"results": []}))

        result = await adapter.render_url("https://www.fastfix.com/", "png")

        assert not result.success
        assert result.error == "No content in rendering response"

    @pytest.mark.asyncio
    async def test_unreachable_service_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        adapter = _make_adapter(handler)

        with pytest.raises(RenderingUnavailableError):
            await adapter.render_url("https://www.fastfix.com/", "html")

    @pytest.mark.asyncio
    async def test_read_timeout_fails_only_that_rendering(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("render took too long", request=request)

        adapter = _make_adapter(handler)

        result = await adapter.render_url("https://www.fastfix.com/", "html")

        assert result.success is False
        assert "render took too long" in result.error

    @pytest.mark.asyncio
    async def test_rejects_unknown_render_type(self) -> None:
        adapter = _make_adapter(lambda request: httpx.Response(200, json={}))

        with pytest.raises(ValueError, match="pdf"):
            await adapter.render_url("https://www.fastfix.com/", "pdf")


class TestNormalizeRenderUrl:
    def test_adds_https_scheme(self) -> None:
        assert OxylabsClientAdapter.normalize_render_url("fastfix.com/deals") == (
            "https://fastfix.com/deals"
        )

    def test_keeps_existing_scheme(self) -> None:
        assert OxylabsClientAdapter.normalize_render_url("http://fastfix.com") == (
            "http://fastfix.com"
        )

    @pytest.mark.parametrize(
        "url",
        ["", "   ", "http://localhost:8000", "http://127.0.0.1/", "https://example.com", "https://www.example.com/x"],
    )
    def test_rejects_unrenderable_targets(self, url: str) -> None:
        with pytest.raises(InvalidRenderTargetError):
            OxylabsClientAdapter.normalize_render_url(url)
