from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from adworker.database.connection import get_connection
from adworker.database.models import QueueBackup, QueueRecord
from adworker.logging.logger import Log
from adworker.processor.exceptions import DuplicateJobError, JobNotFoundError
from adworker.processor.models import Job, JobOptions, Platform, QueuePool

_COLUMNS = """
    job_id, query, location, platform, options, pool, queue_position,
    submitted_at, moved_to_progress_at, completed_at, cancelled_at, cancel_reason
"""


def _to_record(row: dict[str, Any]) -> QueueRecord:
    job = Job(
        id=row["job_id"],
        query=row["query"],
        location=row["location"],
        platform=Platform(row["platform"]),
        options=JobOptions.from_dict(row["options"]),
        submitted_at=row["submitted_at"],
    )
    return QueueRecord(
        job=job,
        pool=QueuePool(row["pool"]),
        queue_position=row["queue_position"],
        moved_to_progress_at=row["moved_to_progress_at"],
        completed_at=row["completed_at"],
        cancelled_at=row["cancelled_at"],
        cancel_reason=row["cancel_reason"],
    )


class QueueRepository:
    """Database operations for the job_queue table.

    Each job id is one row, so it lives in exactly one pool. Writers of a pool
    are serialized with a transaction-scoped advisory lock, and every change
    to the submitted pool first stores a snapshot of it in job_queue_backups.
    """

    async def enqueue(self, job: Job) -> QueueRecord:
        """Append a job to the tail of the submitted pool."""
        async with get_connection() as conn:
            await self._lock_pools(conn, QueuePool.SUBMITTED)
            await self._backup_pool(conn, QueuePool.SUBMITTED, f"enqueue {job.id}")
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    INSERT INTO job_queue (job_id, query, location, platform, options, pool)
                    VALUES (%s, %s, %s, %s, %s, 'submitted')
                    ON CONFLICT (job_id) DO NOTHING
                    RETURNING {_COLUMNS}
                    """,
                    (
                        job.id,
                        job.query,
                        job.location,
                        job.platform.value,
                        Jsonb(job.options.to_dict()),
                    ),
                )
                row = await cur.fetchone()
            if row is None:
                await conn.rollback()
                raise DuplicateJobError(f"Job {job.id} is already queued")
            await conn.commit()
        Log.info(f"Job {job.id} enqueued at position {row['queue_position']}")
        return _to_record(row)

    async def peek_submitted(self) -> QueueRecord | None:
        """Return the head of the submitted pool without moving it."""
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM job_queue
                    WHERE pool = 'submitted' AND cancelled_at IS NULL
                    ORDER BY queue_position
                    LIMIT 1
                    """
                )
                row = await cur.fetchone()
        return _to_record(row) if row else None

    async def list_by_pool(self, pool: QueuePool) -> list[QueueRecord]:
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM job_queue
                    WHERE pool = %s
                    ORDER BY queue_position
                    """,
                    (QueuePool(pool).value,),
                )
                rows = await cur.fetchall()
        return [_to_record(row) for row in rows]

    async def find(self, job_id: str) -> QueueRecord | None:
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"SELECT {_COLUMNS} FROM job_queue WHERE job_id = %s",
                    (job_id,),
                )
                row = await cur.fetchone()
        return _to_record(row) if row else None

    async def move_to_in_progress(self, job_id: str) -> QueueRecord:
        """Move a job from submitted to in_progress.

        Raises:
            JobNotFoundError: if the job is not in the submitted pool.
        """
        return await self._move(
            job_id, QueuePool.SUBMITTED, QueuePool.IN_PROGRESS, "moved_to_progress_at"
        )

    async def move_to_completed(self, job_id: str) -> QueueRecord:
        """Move a job from in_progress to completed.

        Raises:
            JobNotFoundError: if the job is not in the in_progress pool.
        """
        return await self._move(
            job_id, QueuePool.IN_PROGRESS, QueuePool.COMPLETED, "completed_at"
        )

    async def requeue(
        self, job_id: str, from_pool: QueuePool = QueuePool.COMPLETED
    ) -> QueueRecord:
        """Explicit retry: send a job back to the tail of the submitted pool."""
        async with get_connection() as conn:
            await self._lock_pools(conn, from_pool, QueuePool.SUBMITTED)
            await self._fetch_locked(conn, job_id, from_pool)
            await self._backup_pool(conn, QueuePool.SUBMITTED, f"requeue {job_id}")
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    UPDATE job_queue
                    SET pool = 'submitted',
                        queue_position = nextval(pg_get_serial_sequence('job_queue', 'queue_position')),
                        moved_to_progress_at = NULL,
                        completed_at = NULL,
                        cancelled_at = NULL,
                        cancel_reason = NULL
                    WHERE job_id = %s
                    RETURNING {_COLUMNS}
                    """,
                    (job_id,),
                )
                row = await cur.fetchone()
            await conn.commit()
        Log.info(f"Job {job_id} requeued from '{QueuePool(from_pool).value}'")
        return _to_record(row)

    async def claim_next(self) -> QueueRecord | None:
        """Atomically take the head of the submitted pool and move it to in_progress."""
        async with get_connection() as conn:
            await self._lock_pools(conn, QueuePool.SUBMITTED)
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    """
                    SELECT job_id
                    FROM job_queue
                    WHERE pool = 'submitted' AND cancelled_at IS NULL
                    ORDER BY queue_position
                    LIMIT 1
                    FOR UPDATE SKIP LOCKED
                    """
                )
                head = await cur.fetchone()
            if head is None:
                await conn.rollback()
                return None
            job_id = head["job_id"]
            await self._backup_pool(conn, QueuePool.SUBMITTED, f"claim {job_id}")
            row = await self._set_pool(conn, job_id, QueuePool.IN_PROGRESS, "moved_to_progress_at")
            await conn.commit()
        Log.info(f"Job {job_id} claimed")
        return _to_record(row)

    async def is_cancelled(self, job_id: str) -> bool:
        async with get_connection() as conn:
            cur = await conn.execute(
                "SELECT cancelled_at IS NOT NULL FROM job_queue WHERE job_id = %s",
                (job_id,),
            )
            row = await cur.fetchone()
        return bool(row and row[0])

    async def cancel_active(self, reason: str) -> list[str]:
        """Cancel every submitted and in-progress job.

        Submitted jobs go straight to completed. In-progress jobs stay where
        they are, flagged, and the worker discards their result when it
        finishes them.
        """
        async with get_connection() as conn:
            await self._lock_pools(conn, QueuePool.SUBMITTED, QueuePool.IN_PROGRESS)
            await self._backup_pool(conn, QueuePool.SUBMITTED, f"cancel: {reason}")
            cur = await conn.execute(
                """
                UPDATE job_queue
                SET cancelled_at = NOW(),
                    cancel_reason = %s,
                    completed_at = CASE WHEN pool = 'submitted' THEN NOW() ELSE completed_at END,
                    pool = CASE WHEN pool = 'submitted' THEN 'completed' ELSE pool END
                WHERE pool IN ('submitted', 'in_progress') AND cancelled_at IS NULL
                RETURNING job_id
                """,
                (reason,),
            )
            rows = await cur.fetchall()
            await conn.commit()
        job_ids = [row[0] for row in rows]
        Log.warning(f"Cancelled {len(job_ids)} queued job(s): {reason}")
        return job_ids

    async def latest_backup(self, pool: QueuePool = QueuePool.SUBMITTED) -> QueueBackup | None:
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    """
                    SELECT id, pool, snapshot, reason, created_at
                    FROM job_queue_backups
                    WHERE pool = %s
                    ORDER BY id DESC
                    LIMIT 1
                    """,
                    (QueuePool(pool).value,),
                )
                row = await cur.fetchone()
        if row is None:
            return None
        return QueueBackup(
            id=row["id"],
            pool=QueuePool(row["pool"]),
            snapshot=row["snapshot"],
            reason=row["reason"],
            created_at=row["created_at"],
        )

    async def _move(
        self,
        job_id: str,
        source: QueuePool,
        destination: QueuePool,
        timestamp_column: str,
    ) -> QueueRecord:
        async with get_connection() as conn:
            await self._lock_pools(conn, source)
            await self._fetch_locked(conn, job_id, source)
            if source is QueuePool.SUBMITTED:
                await self._backup_pool(
                    conn, source, f"move {job_id} to {destination.value}"
                )
            row = await self._set_pool(conn, job_id, destination, timestamp_column)
            await conn.commit()
        Log.info(f"Job {job_id} moved {source.value} -> {destination.value}")
        return _to_record(row)

    async def _fetch_locked(
        self, conn: psycopg.AsyncConnection[Any], job_id: str, expected: QueuePool
    ) -> None:
        cur = await conn.execute(
            "SELECT pool FROM job_queue WHERE job_id = %s FOR UPDATE",
            (job_id,),
        )
        row = await cur.fetchone()
        if row is None or row[0] != QueuePool(expected).value:
            await conn.rollback()
            found = f"pool '{row[0]}'" if row else "no pool"
            raise JobNotFoundError(
                f"Job {job_id} not found in pool '{QueuePool(expected).value}' (found in {found})"
            )

    async def _set_pool(
        self,
        conn: psycopg.AsyncConnection[Any],
        job_id: str,
        pool: QueuePool,
        timestamp_column: str,
    ) -> dict[str, Any]:
        if timestamp_column not in ("moved_to_progress_at", "completed_at"):
            raise ValueError(f"Unexpected timestamp column '{timestamp_column}'")
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                f"""
                UPDATE job_queue
                SET pool = %s, {timestamp_column} = NOW()
                WHERE job_id = %s
                RETURNING {_COLUMNS}
                """,
                (pool.value, job_id),
            )
            row = await cur.fetchone()
        if row is None:
            raise JobNotFoundError(f"Job {job_id} disappeared while moving to '{pool.value}'")
        return row

    @staticmethod
    async def _lock_pools(conn: psycopg.AsyncConnection[Any], *pools: QueuePool) -> None:
        # Fixed lock order across all callers.
        order = list(QueuePool)
        for pool in sorted({QueuePool(p) for p in pools}, key=order.index):
            await conn.execute(
                "SELECT pg_advisory_xact_lock(hashtext(%s))",
                (f"job_queue:{pool.value}",),
            )

    @staticmethod
    async def _backup_pool(
        conn: psycopg.AsyncConnection[Any], pool: QueuePool, reason: str
    ) -> None:
        await conn.execute(
            """
            INSERT INTO job_queue_backups (pool, snapshot, reason)
            SELECT %s,
                   COALESCE(jsonb_agg(to_jsonb(q) ORDER BY q.queue_position), '[]'::jsonb),
                   %s
            FROM job_queue q
            WHERE q.pool = %s
            """,
            (pool.value, reason, pool.value),
        )
