"""
Document version snapshots.

Snapshots written by jobs carry the job id; the unique
(document_id, source_job_id) key makes a redelivered job reuse the existing
snapshot instead of appending a second one.
"""

from typing import Any
from uuid import uuid4

from blox_pipeline.db.helpers import as_json, fetch_one, load_json
from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.models.domain.pipeline_domain import DocumentVersion

logger = get_logger(__name__)


class VersionRepository:
    SELECT_COLUMNS = "id, document_id, label, branch, content, created_by, source_job_id, created_at"

    @classmethod
    def _row_to_version(cls, row: dict | None) -> DocumentVersion | None:
        if not row:
            return None
        return DocumentVersion(
            id=str(row["id"]),
            document_id=str(row["document_id"]),
            label=row["label"],
            branch=row["branch"],
            content=load_json(row["content"], {}),
            created_by=str(row["created_by"]),
            source_job_id=row.get("source_job_id"),
            created_at=row.get("created_at"),
        )

    @classmethod
    async def create_for_job(
        cls,
        *,
        document_id: str,
        source_job_id: str,
        label: str,
        content: dict[str, Any],
        created_by: str,
        branch: str = "main",
    ) -> DocumentVersion:
        """Insert the snapshot for a job, or return the one already there."""
        insert_query = f"""
            INSERT INTO document_versions (
                id, document_id, label, branch, content, created_by, source_job_id
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (document_id, source_job_id) DO NOTHING
            RETURNING {cls.SELECT_COLUMNS}
        """
        row = await fetch_one(
            insert_query,
            (str(uuid4()), document_id, label, branch, as_json(content), created_by, source_job_id),
        )
        if row:
            logger.info("Document version created", document_id=document_id, label=label)
            return cls._row_to_version(row)

        existing = await fetch_one(
            f"""
            SELECT {cls.SELECT_COLUMNS} FROM document_versions
            WHERE document_id = %s AND source_job_id = %s
            """,
            (document_id, source_job_id),
        )
        logger.info("Document version already recorded for job", document_id=document_id)
        return cls._row_to_version(existing)
