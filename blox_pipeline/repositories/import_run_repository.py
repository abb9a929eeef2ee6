"""
Persistence for profile import runs.
"""

from typing import Any
from uuid import uuid4

from blox_pipeline.db.helpers import as_json, execute_query, fetch_one, load_json
from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.errors import NotFoundError, StatusTransitionError
from blox_pipeline.jobs.status import predecessors
from blox_pipeline.models.domain.pipeline_domain import ImportRun, JobStatus

logger = get_logger(__name__)

QUEUED_PROGRESS = 2


class ImportRunRepository:
    SELECT_COLUMNS = """
        id, user_id, providers, status, progress_pct, message, queue_job_id,
        draft_document_id, merged_profile, confirmed_payload, failed_providers,
        started_at, completed_at
    """

    @classmethod
    def _row_to_run(cls, row: dict | None) -> ImportRun | None:
        if not row:
            return None
        return ImportRun(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            providers=list(row.get("providers") or []),
            status=JobStatus(row["status"]),
            progress_pct=row.get("progress_pct") or 0,
            message=row.get("message"),
            queue_job_id=row.get("queue_job_id"),
            draft_document_id=str(row["draft_document_id"]) if row.get("draft_document_id") else None,
            merged_profile=load_json(row.get("merged_profile")),
            confirmed_payload=load_json(row.get("confirmed_payload")),
            failed_providers=list(row.get("failed_providers") or []),
            started_at=row.get("started_at"),
            completed_at=row.get("completed_at"),
        )

    @classmethod
    async def create(cls, user_id: str, providers: list[str]) -> ImportRun:
        """Insert a queued run so status polling works before a worker picks it up."""
        query = f"""
            INSERT INTO import_runs (id, user_id, providers, status, progress_pct)
            VALUES (%s, %s, %s, 'queued', %s)
            RETURNING {cls.SELECT_COLUMNS}
        """
        row = await fetch_one(query, (str(uuid4()), user_id, providers, QUEUED_PROGRESS))
        run = cls._row_to_run(row)
        logger.info("Import run created", run_id=run.id, user_id=user_id, providers=providers)
        return run

    @classmethod
    async def load(cls, run_id: str, user_id: str | None = None) -> ImportRun | None:
        query = f"SELECT {cls.SELECT_COLUMNS} FROM import_runs WHERE id = %s"
        params: tuple = (run_id,)
        if user_id is not None:
            query += " AND user_id = %s"
            params = (run_id, user_id)
        return cls._row_to_run(await fetch_one(query, params))

    @classmethod
    async def set_queue_job_id(cls, run_id: str, job_id: str) -> None:
        await execute_query("UPDATE import_runs SET queue_job_id = %s WHERE id = %s", (job_id, run_id))

    @classmethod
    async def update(
        cls,
        run_id: str,
        *,
        status: JobStatus | None = None,
        progress_pct: int | None = None,
        message: str | None = None,
        merged_profile: dict[str, Any] | None = None,
        failed_providers: list[str] | None = None,
    ) -> None:
        """Patch a run; a status change is checked against the state machine."""
        assignments = ["message = COALESCE(%s, message)"]
        params: list[Any] = [message]

        if progress_pct is not None:
            assignments.append("progress_pct = %s")
            params.append(max(0, min(100, progress_pct)))
        if merged_profile is not None:
            assignments.append("merged_profile = %s")
            params.append(as_json(merged_profile))
        if failed_providers is not None:
            assignments.append("failed_providers = %s")
            params.append(failed_providers)
        if status is not None:
            status = JobStatus(status)
            assignments.append("status = %s")
            params.append(status.value)
            if status == JobStatus.PROCESSING:
                assignments.append("started_at = COALESCE(started_at, NOW())")
            if status.is_terminal:
                assignments.append("completed_at = NOW()")

        query = f"UPDATE import_runs SET {', '.join(assignments)} WHERE id = %s"
        params.append(run_id)
        if status is not None:
            query += " AND status = ANY(%s)"
            params.append(predecessors(status))

        updated = await execute_query(query, tuple(params))
        if updated:
            return

        run = await cls.load(run_id)
        if run is None:
            raise NotFoundError(f"Import run {run_id} not found", operation="update_import_run")
        raise StatusTransitionError(run.status, status)
