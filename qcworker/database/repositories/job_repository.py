from typing import Any

import psycopg
from psycopg.rows import dict_row

from qcworker.database.connection import get_connection
from qcworker.database.models import JobRecord

_JOB_COLUMNS = "id, document_id, status, attempts, error_message, locked_at, created_at, updated_at"


def _to_job(row: dict[str, Any]) -> JobRecord:
    return JobRecord(
        id=row["id"],
        document_id=str(row["document_id"]),
        status=row["status"],
        attempts=row["attempts"],
        error_message=row.get("error_message"),
        locked_at=row.get("locked_at"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class JobRepository:
    """QC job queue stored in qc_jobs.

    Lifecycle: pending -> processing -> done | failed. A failed attempt
    below ``max_attempts`` goes back to pending with attempts + 1.
    """

    def __init__(self, max_attempts: int) -> None:
        self._max_attempts = max_attempts

    def claim_next_job(self, conn: psycopg.Connection[Any]) -> JobRecord | None:
        """Lock the oldest claimable job and flip it to processing in one statement.

        Concurrent workers skip rows another worker already locked.
        """
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"""
                UPDATE qc_jobs
                SET status = 'processing', locked_at = NOW(), updated_at = NOW()
                WHERE id = (
                    SELECT id
                    FROM qc_jobs
                    WHERE status = 'pending' AND attempts < %s
                    ORDER BY created_at, id
                    LIMIT 1
                    FOR UPDATE SKIP LOCKED
                )
                RETURNING {_JOB_COLUMNS}
                """,
                (self._max_attempts,),
            )
            row = cur.fetchone()
        conn.commit()
        return _to_job(row) if row is not None else None

    def mark_processing(self, job_id: int) -> None:
        self._update(job_id, "status = 'processing'")

    def mark_done(self, job_id: int) -> None:
        self._update(job_id, "status = 'done', locked_at = NULL")

    def mark_failed(self, job_id: int, error: str) -> None:
        self._update(job_id, "status = 'failed', error_message = %s", error)

    def increment_attempts(self, job_id: int) -> None:
        """Release the job for another try."""
        self._update(job_id, "status = 'pending', attempts = attempts + 1, locked_at = NULL")

    def find_by_id(self, job_id: int) -> JobRecord | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(f"SELECT {_JOB_COLUMNS} FROM qc_jobs WHERE id = %s", (job_id,))
                row = cur.fetchone()
        return _to_job(row) if row is not None else None

    def _update(self, job_id: int, assignments: str, *params: Any) -> None:
        with get_connection() as conn:
            conn.execute(
                f"UPDATE qc_jobs SET {assignments}, updated_at = NOW() WHERE id = %s",
                (*params, job_id),
            )
            conn.commit()
