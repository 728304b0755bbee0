from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from adworker.database.connection import get_connection
from adworker.database.models import AdInsertSummary, AdRecord, SerpRecord
from adworker.extraction.domains import UNKNOWN_ADVERTISER
from adworker.extraction.extractor import serp_summary
from adworker.extraction.models import ExtractedAd, ExtractedAdsData
from adworker.logging.logger import Log
from adworker.processor.models import Job, Platform
from adworker.scraping.models import ResultPayload

AD_TABLES: dict[Platform, str] = {
    Platform.GOOGLE: "google_ads",
    Platform.BING: "bing_ads",
}

_SERP_COLUMNS = """
    id, job_id, query, location, platform, timestamp, content, raw_html,
    ads_count, organic_count, local_count
"""
_AD_COLUMNS = """
    id, serp_id, position, position_overall, ad_type, title, description,
    display_url, destination_url, advertiser_domain, sitelinks, extensions
"""


def ad_table(platform: Platform | str) -> str:
    try:
        return AD_TABLES[Platform(platform)]
    except ValueError as exc:
        raise ValueError(f"Unsupported platform '{platform}'") from exc


def _to_serp(row: dict[str, Any]) -> SerpRecord:
    return SerpRecord(
        id=row["id"],
        job_id=row["job_id"],
        query=row["query"],
        location=row["location"],
        platform=row["platform"],
        content=row["content"],
        raw_html=row["raw_html"],
        ads_count=row["ads_count"],
        organic_count=row["organic_count"],
        local_count=row["local_count"],
        timestamp=row["timestamp"],
    )


def _to_ad(row: dict[str, Any], platform: Platform) -> AdRecord:
    return AdRecord(
        id=row["id"],
        serp_id=row["serp_id"],
        platform=platform.value,
        position=row["position"],
        position_overall=row["position_overall"],
        ad_type=row["ad_type"],
        title=row["title"],
        description=row["description"] or "",
        display_url=row["display_url"] or "",
        destination_url=row["destination_url"] or "",
        advertiser_domain=row["advertiser_domain"] or UNKNOWN_ADVERTISER,
        sitelinks=row["sitelinks"] or [],
        extensions=row["extensions"] or [],
    )


class SerpRepository:
    """Database operations for serp_results, the per-platform ad tables and advertisers."""

    async def create_serp_result(
        self, job: Job, result: ResultPayload, data: ExtractedAdsData
    ) -> SerpRecord:
        """Store the page payload with its summary counts. One row per job, never updated."""
        ads_count, organic_count, local_count = serp_summary(data)
        content = result.body if isinstance(result.body, dict) else None
        raw_html = result.body if isinstance(result.body, str) else None
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    INSERT INTO serp_results (
                        job_id, query, location, platform, content, raw_html,
                        ads_count, organic_count, local_count
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (job_id) DO NOTHING
                    RETURNING {_SERP_COLUMNS}
                    """,
                    (
                        job.id,
                        job.query,
                        job.location,
                        job.platform.value,
                        Jsonb(content) if content is not None else None,
                        raw_html,
                        ads_count,
                        organic_count,
                        local_count,
                    ),
                )
                row = await cur.fetchone()
                if row is None:
                    await cur.execute(
                        f"SELECT {_SERP_COLUMNS} FROM serp_results WHERE job_id = %s",
                        (job.id,),
                    )
                    row = await cur.fetchone()
                    Log.info(f"Job {job.id} already has SERP result {row['id']}")
            await conn.commit()
        return _to_serp(row)

    async def find_by_id(self, serp_id: int) -> SerpRecord | None:
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"SELECT {_SERP_COLUMNS} FROM serp_results WHERE id = %s",
                    (serp_id,),
                )
                row = await cur.fetchone()
        return _to_serp(row) if row else None

    async def find_by_job_id(self, job_id: str) -> SerpRecord | None:
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"SELECT {_SERP_COLUMNS} FROM serp_results WHERE job_id = %s",
                    (job_id,),
                )
                row = await cur.fetchone()
        return _to_serp(row) if row else None

    async def insert_ads(
        self, serp_id: int, platform: Platform, data: ExtractedAdsData
    ) -> AdInsertSummary:
        """Persist the text ads of a SERP and register their advertisers.

        Ads are keyed by ``(serp_id, position_overall)``, so replaying the
        stage returns the stored rows without counting them again.
        """
        platform = Platform(platform)
        table = ad_table(platform)
        summary = AdInsertSummary()
        new_ads_by_domain: dict[str, int] = {}
        placed = [("top", ad) for ad in data.top_ads] + [("bottom", ad) for ad in data.bottom_ads]
        async with get_connection() as conn:
            for ad_type, ad in placed:
                row, inserted = await self._insert_ad(conn, table, serp_id, ad_type, ad)
                summary.ads.append(_to_ad(row, platform))
                if inserted:
                    summary.new_ads_count += 1
                    if ad.advertiser_domain != UNKNOWN_ADVERTISER:
                        new_ads_by_domain[ad.advertiser_domain] = (
                            new_ads_by_domain.get(ad.advertiser_domain, 0) + 1
                        )
            for domain, ads_count in new_ads_by_domain.items():
                if await self._upsert_advertiser(conn, domain, ads_count):
                    summary.new_advertisers_count += 1
            await conn.commit()
        Log.info(
            f"SERP {serp_id}: stored {summary.new_ads_count} new ad(s), "
            f"{summary.new_advertisers_count} new advertiser(s)"
        )
        return summary

    async def list_ads(self, serp_id: int, platform: Platform) -> list[AdRecord]:
        platform = Platform(platform)
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    SELECT {_AD_COLUMNS}
                    FROM {ad_table(platform)}
                    WHERE serp_id = %s
                    ORDER BY position_overall
                    """,
                    (serp_id,),
                )
                rows = await cur.fetchall()
        return [_to_ad(row, platform) for row in rows]

    @staticmethod
    async def _insert_ad(
        conn: psycopg.AsyncConnection[Any],
        table: str,
        serp_id: int,
        ad_type: str,
        ad: ExtractedAd,
    ) -> tuple[dict[str, Any], bool]:
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                f"""
                INSERT INTO {table} (
                    serp_id, position, position_overall, ad_type, title, description,
                    display_url, destination_url, advertiser_domain, sitelinks, extensions
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (serp_id, position_overall) DO NOTHING
                RETURNING {_AD_COLUMNS}
                """,
                (
                    serp_id,
                    ad.position,
                    ad.position_overall,
                    ad_type,
                    ad.title,
                    ad.description,
                    ad.display_url,
                    ad.destination_url,
                    ad.advertiser_domain,
                    Jsonb([link.to_dict() for link in ad.sitelinks]),
                    Jsonb(list(ad.extensions)),
                ),
            )
            row = await cur.fetchone()
            if row is not None:
                return row, True
            await cur.execute(
                f"""
                SELECT {_AD_COLUMNS}
                FROM {table}
                WHERE serp_id = %s AND position_overall = %s
                """,
                (serp_id, ad.position_overall),
            )
            return await cur.fetchone(), False

    @staticmethod
    async def _upsert_advertiser(
        conn: psycopg.AsyncConnection[Any], domain: str, ads_count: int
    ) -> bool:
        """Add ``ads_count`` newly stored ads to an advertiser. Returns True if the domain was new."""
        cur = await conn.execute(
            """
            INSERT INTO advertisers (domain, ads_count)
            VALUES (%s, %s)
            ON CONFLICT (domain) DO UPDATE
            SET last_seen = NOW(), ads_count = advertisers.ads_count + EXCLUDED.ads_count
            RETURNING (xmax = 0) AS inserted
            """,
            (domain, ads_count),
        )
        row = await cur.fetchone()
        return bool(row and row[0])
