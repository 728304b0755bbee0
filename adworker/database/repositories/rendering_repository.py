from typing import Any

from psycopg.rows import dict_row

from adworker.database.connection import get_connection
from adworker.database.models import AdRenderingRecord
from adworker.processor.models import Platform

RENDERING_TABLES: dict[Platform, str] = {
    Platform.GOOGLE: "google_ad_renderings",
    Platform.BING: "bing_ad_renderings",
}
RENDERING_TYPES = ("html", "png")
RENDERING_TARGETS = ("serp", "landing_page")

_COLUMNS = """
    id, ad_id, rendering_type, rendering_target, status, content_path,
    storage_url, content_size, error_message, created_at, completed_at
"""


def rendering_table(platform: Platform | str) -> str:
    try:
        return RENDERING_TABLES[Platform(platform)]
    except ValueError as exc:
        raise ValueError(f"Unsupported platform '{platform}'") from exc


def _to_record(row: dict[str, Any]) -> AdRenderingRecord:
    return AdRenderingRecord(
        id=row["id"],
        ad_id=row["ad_id"],
        rendering_type=row["rendering_type"],
        rendering_target=row["rendering_target"],
        status=row["status"],
        content_path=row["content_path"],
        storage_url=row["storage_url"],
        content_size=row["content_size"],
        error_message=row["error_message"],
        created_at=row["created_at"],
        completed_at=row["completed_at"],
    )


class RenderingRepository:
    """Database operations for the per-platform ad rendering tables."""

    async def create_rendering(
        self,
        ad_id: int,
        platform: Platform,
        rendering_type: str,
        rendering_target: str = "landing_page",
    ) -> AdRenderingRecord:
        if rendering_type not in RENDERING_TYPES:
            raise ValueError(f"Unsupported rendering type '{rendering_type}'")
        if rendering_target not in RENDERING_TARGETS:
            raise ValueError(f"Unsupported rendering target '{rendering_target}'")
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    INSERT INTO {rendering_table(platform)}
                        (ad_id, rendering_type, rendering_target, status)
                    VALUES (%s, %s, %s, 'pending')
                    RETURNING {_COLUMNS}
                    """,
                    (ad_id, rendering_type, rendering_target),
                )
                row = await cur.fetchone()
            await conn.commit()
        return _to_record(row)

    async def mark_completed(
        self,
        rendering_id: int,
        platform: Platform,
        *,
        content_path: str,
        storage_url: str,
        content_size: int,
    ) -> None:
        async with get_connection() as conn:
            await conn.execute(
                f"""
                UPDATE {rendering_table(platform)}
                SET status = 'completed', content_path = %s, storage_url = %s,
                    content_size = %s, error_message = NULL, completed_at = NOW()
                WHERE id = %s
                """,
                (content_path, storage_url, content_size, rendering_id),
            )
            await conn.commit()

    async def mark_failed(self, rendering_id: int, platform: Platform, error: str) -> None:
        async with get_connection() as conn:
            await conn.execute(
                f"""
                UPDATE {rendering_table(platform)}
                SET status = 'failed', error_message = %s, completed_at = NOW()
                WHERE id = %s
                """,
                (error, rendering_id),
            )
            await conn.commit()

    async def list_for_ad(self, ad_id: int, platform: Platform) -> list[AdRenderingRecord]:
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM {rendering_table(platform)}
                    WHERE ad_id = %s
                    ORDER BY id
                    """,
                    (ad_id,),
                )
                rows = await cur.fetchall()
        return [_to_record(row) for row in rows]
