from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from adworker.database.repositories.rendering_repository import RenderingRepository, rendering_table
from adworker.database.repositories.serp_repository import SerpRepository, ad_table
from adworker.extraction.assembly import assemble
from adworker.extraction.models import ExtractedAd
from adworker.processor.models import Job, Platform
from adworker.scraping.models import ResultPayload


def _mock_connection(mock_get_conn: MagicMock) -> tuple[AsyncMock, AsyncMock]:
    """Wire up a mock async connection + cursor and return (mock_conn, mock_cursor)."""
    mock_cursor = AsyncMock()
    mock_conn = AsyncMock()
    mock_conn.cursor = MagicMock()
    mock_conn.cursor.return_value.__aenter__.return_value = mock_cursor
    mock_conn.cursor.return_value.__aexit__.return_value = False
    mock_conn.execute.return_value = AsyncMock()
    mock_get_conn.return_value.__aenter__.return_value = mock_conn
    mock_get_conn.return_value.__aexit__.return_value = False
    return mock_conn, mock_cursor


def _serp_row(**overrides: object) -> dict:
    row = {
        "id": 11,
        "job_id": "7101",
        "query": "plumbers near me",
        "location": "Boston, MA",
        "platform": "google",
        "timestamp": None,
        "content": None,
        "raw_html": "<html></html>",
        "ads_count": 2,
        "organic_count": 1,
        "local_count": 0,
    }
    row.update(overrides)
    return row


def _ad_row(position_overall: int, domain: str) -> dict:
    return {
        "id": 100 + position_overall,
        "serp_id": 11,
        "position": position_overall,
        "position_overall": position_overall,
        "ad_type": "top",
        "title": f"Ad {position_overall}",
        "description": None,
        "display_url": None,
        "destination_url": f"https://www.{domain}/",
        "advertiser_domain": domain,
        "sitelinks": None,
        "extensions": None,
    }


class TestTableWhitelist:
    def test_known_platforms(self) -> None:
        assert ad_table("google") == "google_ads"
        assert ad_table(Platform.BING) == "bing_ads"
        assert rendering_table("bing") == "bing_ad_renderings"

    def test_unknown_platform(self) -> None:
        with pytest.raises(ValueError, match="yahoo"):
            ad_table("yahoo")


class TestCreateSerpResult:
    @pytest.mark.asyncio
    @patch("adworker.database.repositories.serp_repository.get_connection")
    async def test_stores_raw_html(self, mock_get_conn: MagicMock) -> None:
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = _serp_row()
        job = Job(id="7101", query="plumbers near me", location="Boston, MA")
        result = ResultPayload(job_id="7101", status="done", body="<html></html>", representation="raw", attempts=1)
        data = assemble(top_ads=[ExtractedAd(title="A"), ExtractedAd(title="B")])

        serp = await SerpRepository().create_serp_result(job, result, data)

        _sql, params = mock_cursor.execute.await_args.args
        assert params[4] is None
        assert params[5] == "<html></html>"
        assert params[6:] == (2, 0, 0)
        assert serp.payload == "<html></html>"
        mock_conn.commit.assert_awaited_once()

    @pytest.mark.asyncio
    @patch("adworker.database.repositories.serp_repository.get_connection")
    async def test_returns_existing_row_for_same_job(self, mock_get_conn: MagicMock) -> None:
        _conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.side_effect = [None, _serp_row(id=7)]
        job = Job(id="7101", query="plumbers near me", location="Boston, MA")
        result = ResultPayload(job_id="7101", status="done", body={"results": {}}, representation="parsed", attempts=1)

        serp = await SerpRepository().create_serp_result(job, result, assemble())

        assert serp.id == 7
        assert mock_cursor.execute.await_count == 2


class TestInsertAds:
    @pytest.mark.asyncio
    @patch("adworker.database.repositories.serp_repository.get_connection")
    async def test_counts_new_ads_and_advertisers(self, mock_get_conn: MagicMock) -> None:
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        data = assemble(
            top_ads=[
                ExtractedAd(title="A", advertiser_domain="fastfix.com"),
                ExtractedAd(title="B", advertiser_domain="fastfix.com"),
                ExtractedAd(title="C", advertiser_domain="bostonplumbing.com"),
            ]
        )
        mock_cursor.fetchone.side_effect = [
            _ad_row(1, "fastfix.com"),
            _ad_row(2, "fastfix.com"),
            _ad_row(3, "bostonplumbing.com"),
        ]
        mock_conn.execute.return_value.fetchone.side_effect = [(True,), (False,)]

        summary = await SerpRepository().insert_ads(11, Platform.GOOGLE, data)

        assert summary.new_ads_count == 3
        assert summary.new_advertisers_count == 1
        assert [ad.id for ad in summary.ads] == [101, 102, 103]
        assert summary.ads[0].sitelinks == []
        # One advertiser upsert per distinct domain, carrying its new ad count.
        assert mock_conn.execute.await_count == 2
        upserts = [c.args[1] for c in mock_conn.execute.await_args_list]
        assert upserts == [("fastfix.com", 2), ("bostonplumbing.com", 1)]

    @pytest.mark.asyncio
    @patch("adworker.database.repositories.serp_repository.get_connection")
    async def test_replay_does_not_count_again(self, mock_get_conn: MagicMock) -> None:
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        data = assemble(top_ads=[ExtractedAd(title="A", advertiser_domain="fastfix.com")])
        mock_cursor.fetchone.side_effect = [None, _ad_row(1, "fastfix.com")]

        summary = await SerpRepository().insert_ads(11, Platform.GOOGLE, data)

        assert summary.new_ads_count == 0
        assert summary.new_advertisers_count == 0
        assert len(summary.ads) == 1
        mock_conn.execute.assert_not_awaited()


class TestRenderingRepository:
    @pytest.mark.asyncio
    async def test_rejects_unknown_type(self) -> None:
        with pytest.raises(ValueError, match="pdf"):
            await RenderingRepository().create_rendering(1, Platform.GOOGLE, "pdf")

    @pytest.mark.asyncio
    async def test_rejects_unknown_target(self) -> None:
        with pytest.raises(ValueError, match="sidebar"):
            await RenderingRepository().create_rendering(1, Platform.GOOGLE, "png", "sidebar")
