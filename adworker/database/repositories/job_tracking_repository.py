from typing import Any

from psycopg.rows import dict_row

from adworker.database.connection import get_connection
from adworker.database.models import JobStats, JobTrackingRecord
from adworker.logging.logger import Log
from adworker.processor.exceptions import TrackingRecordNotFoundError
from adworker.processor.models import AggregateStatus, Job, Stage, StageStatus
from adworker.processor.status import derive_aggregate_status, first_unfinished_stage

_COLUMNS = """
    job_id, query, location, status,
    api_call_status, serp_processing_status, ads_extraction_status, rendering_status,
    error_message, new_ads_count, new_advertisers_count, serp_id,
    started_at, updated_at, completed_at
"""


def _to_record(row: dict[str, Any]) -> JobTrackingRecord:
    return JobTrackingRecord(
        job_id=row["job_id"],
        query=row["query"],
        location=row["location"],
        status=AggregateStatus(row["status"]),
        api_call_status=StageStatus(row["api_call_status"]),
        serp_processing_status=StageStatus(row["serp_processing_status"]),
        ads_extraction_status=StageStatus(row["ads_extraction_status"]),
        rendering_status=StageStatus(row["rendering_status"]),
        error_message=row["error_message"],
        new_ads_count=row["new_ads_count"],
        new_advertisers_count=row["new_advertisers_count"],
        serp_id=row["serp_id"],
        started_at=row["started_at"],
        updated_at=row["updated_at"],
        completed_at=row["completed_at"],
    )


class JobTrackingRepository:
    """Database operations for the job_tracking table.

    Stage updates lock the row, recompute the aggregate status and refuse to
    move a record out of a terminal status. Only ``reset_for_retry`` does that.
    """

    async def create(self, job: Job) -> JobTrackingRecord:
        """Create the tracking record for a job, or return the existing one."""
        async with get_connection() as conn:
            await conn.execute(
                """
                INSERT INTO job_tracking (job_id, query, location)
                VALUES (%s, %s, %s)
                ON CONFLICT (job_id) DO NOTHING
                """,
                (job.id, job.query, job.location),
            )
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"SELECT {_COLUMNS} FROM job_tracking WHERE job_id = %s",
                    (job.id,),
                )
                row = await cur.fetchone()
            await conn.commit()
        return _to_record(row)

    async def find_by_id(self, job_id: str) -> JobTrackingRecord | None:
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"SELECT {_COLUMNS} FROM job_tracking WHERE job_id = %s",
                    (job_id,),
                )
                row = await cur.fetchone()
        return _to_record(row) if row else None

    async def get(self, job_id: str) -> JobTrackingRecord:
        """Fetch a tracking record, raising TrackingRecordNotFoundError if missing."""
        record = await self.find_by_id(job_id)
        if record is None:
            raise TrackingRecordNotFoundError(f"Job {job_id} has no tracking record")
        return record

    async def list_by_status(
        self, status: AggregateStatus, limit: int = 50, offset: int = 0
    ) -> list[JobTrackingRecord]:
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM job_tracking
                    WHERE status = %s
                    ORDER BY started_at DESC NULLS LAST, job_id
                    LIMIT %s OFFSET %s
                    """,
                    (AggregateStatus(status).value, limit, offset),
                )
                rows = await cur.fetchall()
        return [_to_record(row) for row in rows]

    async def list_recent(self, limit: int = 50, offset: int = 0) -> list[JobTrackingRecord]:
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM job_tracking
                    ORDER BY updated_at DESC, job_id
                    LIMIT %s OFFSET %s
                    """,
                    (limit, offset),
                )
                rows = await cur.fetchall()
        return [_to_record(row) for row in rows]

    async def update_stage(
        self,
        job_id: str,
        stage: Stage,
        status: StageStatus,
        *,
        error_message: str | None = None,
        serp_id: int | None = None,
        new_ads_count: int | None = None,
        new_advertisers_count: int | None = None,
    ) -> JobTrackingRecord:
        """Set one stage status and recompute the aggregate status."""
        stage = Stage(stage)
        status = StageStatus(status)
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"SELECT {_COLUMNS} FROM job_tracking WHERE job_id = %s FOR UPDATE",
                    (job_id,),
                )
                row = await cur.fetchone()
            if row is None:
                await conn.rollback()
                raise TrackingRecordNotFoundError(f"Job {job_id} has no tracking record")
            current = _to_record(row)
            if current.status.is_terminal:
                await conn.rollback()
                Log.warning(
                    f"Job {job_id} is already '{current.status.value}'; "
                    f"ignoring {stage.value} -> {status.value}"
                )
                return current

            statuses = current.stage_statuses()
            statuses[stage] = status
            aggregate = derive_aggregate_status(statuses)
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    UPDATE job_tracking
                    SET {stage.column} = %s,
                        status = %s,
                        error_message = COALESCE(%s, error_message),
                        serp_id = COALESCE(%s, serp_id),
                        new_ads_count = COALESCE(%s, new_ads_count),
                        new_advertisers_count = COALESCE(%s, new_advertisers_count),
                        started_at = COALESCE(started_at, NOW()),
                        completed_at = CASE WHEN %s THEN NOW() ELSE completed_at END,
                        updated_at = NOW()
                    WHERE job_id = %s
                    RETURNING {_COLUMNS}
                    """,
                    (
                        status.value,
                        aggregate.value,
                        error_message,
                        serp_id,
                        new_ads_count,
                        new_advertisers_count,
                        aggregate.is_terminal,
                        job_id,
                    ),
                )
                updated = await cur.fetchone()
            await conn.commit()
        Log.debug(
            f"Job {job_id}: {stage.value} -> {status.value} (status {aggregate.value})"
        )
        return _to_record(updated)

    async def mark_failed(self, job_id: str, error_message: str) -> JobTrackingRecord | None:
        """Fail a non-terminal job outright, failing whichever stage was running."""
        records = await self._fail_active([job_id], error_message)
        return records[0] if records else None

    async def mark_cancelled(self, job_ids: list[str], reason: str) -> int:
        """Fail every pending or in-progress record among ``job_ids``."""
        if not job_ids:
            return 0
        records = await self._fail_active(job_ids, reason)
        return len(records)

    async def reset_for_retry(self, job_id: str) -> JobTrackingRecord:
        """Explicit retry: reset the first unfinished stage and every later stage to pending."""
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"SELECT {_COLUMNS} FROM job_tracking WHERE job_id = %s FOR UPDATE",
                    (job_id,),
                )
                row = await cur.fetchone()
            if row is None:
                await conn.rollback()
                raise TrackingRecordNotFoundError(f"Job {job_id} has no tracking record")
            statuses = _to_record(row).stage_statuses()
            restart = first_unfinished_stage(statuses)
            if restart is not None:
                stages = list(Stage)
                for stage in stages[stages.index(restart):]:
                    statuses[stage] = StageStatus.PENDING
            aggregate = derive_aggregate_status(statuses)
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    UPDATE job_tracking
                    SET api_call_status = %s,
                        serp_processing_status = %s,
                        ads_extraction_status = %s,
                        rendering_status = %s,
                        status = %s,
                        error_message = NULL,
                        completed_at = NULL,
                        updated_at = NOW()
                    WHERE job_id = %s
                    RETURNING {_COLUMNS}
                    """,
                    (
                        statuses[Stage.API_CALL].value,
                        statuses[Stage.SERP_PROCESSING].value,
                        statuses[Stage.ADS_EXTRACTION].value,
                        statuses[Stage.RENDERING].value,
                        aggregate.value,
                        job_id,
                    ),
                )
                updated = await cur.fetchone()
            await conn.commit()
        Log.info(
            f"Job {job_id} reset for retry from stage "
            f"'{restart.value if restart else 'none'}'"
        )
        return _to_record(updated)

    async def get_stats(self) -> JobStats:
        """Totals per aggregate status and per stage status."""
        stage_queries = " UNION ALL ".join(
            f"SELECT '{stage.value}' AS stage, {stage.column} AS value, COUNT(*) AS count "
            f"FROM job_tracking GROUP BY {stage.column}"
            for stage in Stage
        )
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    "SELECT status, COUNT(*) AS count FROM job_tracking GROUP BY status"
                )
                status_rows = await cur.fetchall()
                await cur.execute(stage_queries)
                stage_rows = await cur.fetchall()

        stats = JobStats()
        for row in status_rows:
            stats.by_status[row["status"]] = row["count"]
            stats.total += row["count"]
        for row in stage_rows:
            stats.by_stage.setdefault(row["stage"], {})[row["value"]] = row["count"]
        return stats

    async def _fail_active(self, job_ids: list[str], message: str) -> list[JobTrackingRecord]:
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    UPDATE job_tracking
                    SET status = 'failed',
                        api_call_status = CASE WHEN api_call_status = 'in_progress'
                            THEN 'failed' ELSE api_call_status END,
                        serp_processing_status = CASE WHEN serp_processing_status = 'in_progress'
                            THEN 'failed' ELSE serp_processing_status END,
                        ads_extraction_status = CASE WHEN ads_extraction_status = 'in_progress'
                            THEN 'failed' ELSE ads_extraction_status END,
                        rendering_status = CASE WHEN rendering_status = 'in_progress'
                            THEN 'failed' ELSE rendering_status END,
                        error_message = %s,
                        completed_at = NOW(),
                        updated_at = NOW()
                    WHERE job_id = ANY(%s) AND status IN ('pending', 'in_progress')
                    RETURNING {_COLUMNS}
                    """,
                    (message, job_ids),
                )
                rows = await cur.fetchall()
            await conn.commit()
        for row in rows:
            Log.warning(f"Job {row['job_id']} marked failed: {message}")
        return [_to_record(row) for row in rows]
