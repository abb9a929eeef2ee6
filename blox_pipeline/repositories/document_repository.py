"""
Persistence for documents: job status, content merges and visibility.

Status writes are compare-and-set against the state machine and content
writes are optimistic on the `revision` counter, so two jobs racing on the
same document cannot silently overwrite each other.
"""

from collections.abc import Callable
from typing import Any
from uuid import uuid4

from blox_pipeline.db.helpers import as_json, execute_query, fetch_one, load_json, with_db_retry
from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.errors import ConcurrentUpdateError, NotFoundError, StatusTransitionError
from blox_pipeline.jobs.status import ensure_transition, predecessors
from blox_pipeline.models.domain.pipeline_domain import (
    Document,
    DocumentType,
    JobStatus,
    Visibility,
)

logger = get_logger(__name__)

MAX_WRITE_ATTEMPTS = 3
MESSAGE_LIMIT = 500


def merge_content(content: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Shallow merge: top-level keys in patch replace those in content."""
    merged = dict(content or {})
    merged.update(patch)
    return merged


def clamp_score(score: int | float) -> int:
    return max(0, min(100, int(score)))


class DocumentRepository:
    SELECT_COLUMNS = """
        id, user_id, type, title, content, health_score, job_status, job_id,
        job_topic, job_message, seo_config, visibility, published_url, slug, revision
    """

    @classmethod
    def _row_to_document(cls, row: dict | None) -> Document | None:
        if not row:
            return None

        return Document(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            type=DocumentType.parse(row["type"]),
            title=row["title"],
            content=load_json(row.get("content"), {}),
            health_score=row.get("health_score") or 0,
            job_status=JobStatus(row.get("job_status") or JobStatus.IDLE),
            job_id=row.get("job_id"),
            job_topic=row.get("job_topic"),
            job_message=row.get("job_message"),
            seo_config=load_json(row.get("seo_config"), {}),
            visibility=Visibility(row.get("visibility") or Visibility.PRIVATE),
            published_url=row.get("published_url"),
            slug=row.get("slug"),
            revision=row.get("revision") or 0,
        )

    @classmethod
    async def load(cls, document_id: str, user_id: str | None = None) -> Document | None:
        """Return the document, optionally only when owned by user_id."""
        query = f"SELECT {cls.SELECT_COLUMNS} FROM documents WHERE id = %s"
        params: tuple = (document_id,)
        if user_id is not None:
            query += " AND user_id = %s"
            params = (document_id, user_id)

        row = await fetch_one(query, params)
        return cls._row_to_document(row)

    @classmethod
    async def require(cls, document_id: str, user_id: str | None = None) -> Document:
        document = await cls.load(document_id, user_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found", operation="load_document")
        return document

    @classmethod
    async def create_copy(cls, source: Document, title: str) -> Document:
        """Insert a private copy of source with the same content."""
        query = f"""
            INSERT INTO documents (id, user_id, type, title, content, seo_config, health_score)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING {cls.SELECT_COLUMNS}
        """
        row = await fetch_one(
            query,
            (
                str(uuid4()),
                source.user_id,
                source.type.value,
                title,
                as_json(source.content),
                as_json(source.seo_config),
                source.health_score,
            ),
        )
        document = cls._row_to_document(row)
        logger.info("Document copied", source_id=source.id, document_id=document.id)
        return document

    @classmethod
    @with_db_retry()
    async def set_job_status(
        cls,
        document_id: str,
        status: JobStatus,
        *,
        job_id: str,
        topic: str | None = None,
        message: str | None = None,
    ) -> None:
        """
        Move the document's job status, atomically checking the current state.

        Raises StatusTransitionError when the document is not in a state the
        target may be reached from, NotFoundError when it no longer exists.
        """
        status = JobStatus(status)
        allowed_from = predecessors(status)

        # A processing job may only be continued or finished by the same job id.
        job_guard = "" if status == JobStatus.QUEUED else " AND job_id = %s"
        query = f"""
            UPDATE documents
            SET job_status = %s,
                job_id = %s,
                job_topic = COALESCE(%s, job_topic),
                job_message = %s,
                job_updated_at = NOW(),
                updated_at = NOW()
            WHERE id = %s AND job_status = ANY(%s){job_guard}
        """
        params: tuple = (
            status.value,
            job_id,
            topic,
            (message or None) and message[:MESSAGE_LIMIT],
            document_id,
            allowed_from,
        )
        if job_guard:
            params += (job_id,)

        updated = await execute_query(query, params)
        if updated:
            logger.info(
                "Document job status updated",
                document_id=document_id,
                status=status.value,
                job_id=job_id,
            )
            return

        current = await cls.load(document_id)
        if current is None:
            raise NotFoundError(f"Document {document_id} not found", operation="set_job_status")
        if current.job_id != job_id and status != JobStatus.QUEUED:
            raise StatusTransitionError(f"{current.job_status} (job {current.job_id})", status)
        ensure_transition(current.job_status, status)
        # Legal transition but the row moved underneath us
        raise ConcurrentUpdateError(
            f"Document {document_id} status changed concurrently", operation="set_job_status"
        )

    @classmethod
    async def update_content(
        cls,
        document_id: str,
        build_patch: Callable[[Document], dict[str, Any]],
        *,
        health_score: int | None = None,
        field: str = "content",
    ) -> Document:
        """
        Merge a patch into `content` (or `seo_config`) with optimistic locking.

        build_patch receives the freshly loaded document on every attempt so
        the patch is always computed against the latest revision.
        """
        if field not in ("content", "seo_config"):
            raise ValueError(f"Unsupported document field: {field}")

        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            document = await cls.require(document_id)
            current = document.content if field == "content" else document.seo_config
            merged = merge_content(current, build_patch(document))

            query = f"""
                UPDATE documents
                SET {field} = %s,
                    health_score = COALESCE(%s, health_score),
                    revision = revision + 1,
                    updated_at = NOW()
                WHERE id = %s AND revision = %s
            """
            score = clamp_score(health_score) if health_score is not None else None
            updated = await execute_query(
                query, (as_json(merged), score, document_id, document.revision)
            )
            if updated:
                setattr(document, field, merged)
                if score is not None:
                    document.health_score = score
                document.revision += 1
                return document

            logger.warning(
                "Document revision conflict, retrying",
                document_id=document_id,
                attempt=attempt,
                revision=document.revision,
            )

        raise ConcurrentUpdateError(
            f"Document {document_id} kept changing during update", operation="update_content"
        )

    @classmethod
    async def set_publication(
        cls,
        document_id: str,
        *,
        visibility: Visibility,
        published_url: str | None = None,
        slug: str | None = None,
    ) -> None:
        query = """
            UPDATE documents
            SET visibility = %s,
                published_url = COALESCE(%s, published_url),
                slug = COALESCE(%s, slug),
                revision = revision + 1,
                updated_at = NOW()
            WHERE id = %s
        """
        updated = await execute_query(query, (visibility.value, published_url, slug, document_id))
        if not updated:
            raise NotFoundError(f"Document {document_id} not found", operation="set_publication")
