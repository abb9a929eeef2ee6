"""
Shared lifecycle for handlers that work on a single document.

    load document -> skip superseded / finished jobs -> processing
        -> run() -> completed

Handlers write their results before the terminal status, so a crash in
between leads to a redelivery that repeats idempotent writes and then
completes.
"""

from datetime import UTC, datetime
from typing import Any

from blox_pipeline.config import settings
from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.errors import is_recoverable
from blox_pipeline.jobs.payloads import JobPayload, parse_payload
from blox_pipeline.jobs.queue import JobEnvelope
from blox_pipeline.models.domain.pipeline_domain import Document, JobStatus, Topic
from blox_pipeline.repositories.document_repository import DocumentRepository
from blox_pipeline.repositories.notification_repository import NotificationRepository
from blox_pipeline.repositories.version_repository import VersionRepository
from blox_pipeline.services.ai_client import ai_client

logger = get_logger(__name__)

JOB_FAILED_NOTIFICATION = "job_failed"


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class JobHandlerBase:
    """Entry point the consumer loop calls with each delivered job."""

    topic: Topic

    def __init__(
        self,
        *,
        ai=None,
        documents=DocumentRepository,
        versions=VersionRepository,
        notifications=NotificationRepository,
        max_attempts: int | None = None,
    ):
        self.ai = ai or ai_client
        self.documents = documents
        self.versions = versions
        self.notifications = notifications
        self.max_attempts = max_attempts or settings.QUEUE_MAX_ATTEMPTS

    def parse(self, job: JobEnvelope) -> JobPayload:
        return parse_payload(self.topic, job.payload)

    def is_final_attempt(self, job: JobEnvelope, error: BaseException) -> bool:
        return not is_recoverable(error) or job.attempt >= self.max_attempts

    async def __call__(self, job: JobEnvelope) -> dict[str, Any]:
        raise NotImplementedError


class DocumentJobHandler(JobHandlerBase):
    """Base for generate, duplicate, critique, ats-scan and seo-audit."""

    async def run(self, job: JobEnvelope, payload: JobPayload, document: Document) -> dict[str, Any]:
        raise NotImplementedError

    async def __call__(self, job: JobEnvelope) -> dict[str, Any]:
        payload = self.parse(job)
        document = await self.documents.require(payload.document_id, payload.user_id)

        if document.job_id != job.id:
            logger.info(
                "Skipping superseded job",
                document_id=document.id,
                active_job_id=document.job_id,
            )
            return {"documentId": document.id, "skipped": True, "reason": "superseded"}
        if document.job_status.is_terminal:
            logger.info(
                "Skipping job that already finished",
                document_id=document.id,
                status=document.job_status.value,
            )
            return {"documentId": document.id, "skipped": True, "reason": document.job_status.value}

        await self.documents.set_job_status(
            document.id, JobStatus.PROCESSING, job_id=job.id, topic=self.topic.value
        )
        logger.info("Job started", document_id=document.id)

        try:
            result = await self.run(job, payload, document)
        except Exception as e:
            await self._record_failure(job, payload, document, e)
            raise

        await self.documents.set_job_status(document.id, JobStatus.COMPLETED, job_id=job.id)
        logger.info("Job finished", document_id=document.id)
        return result

    async def _record_failure(
        self, job: JobEnvelope, payload: JobPayload, document: Document, error: Exception
    ) -> None:
        """Write `failed` when no retry will follow; otherwise leave the job processing."""
        final = self.is_final_attempt(job, error)
        try:
            if final:
                await self.documents.set_job_status(
                    document.id, JobStatus.FAILED, job_id=job.id, message=str(error)
                )
                await self.notifications.create(
                    user_id=payload.user_id,
                    type=JOB_FAILED_NOTIFICATION,
                    title=f"{self.topic.value} job failed",
                    payload={"documentId": document.id, "topic": self.topic.value, "error": str(error)},
                    source_job_id=job.id,
                )
            else:
                await self.documents.set_job_status(
                    document.id,
                    JobStatus.PROCESSING,
                    job_id=job.id,
                    message=f"Retrying after error: {error}",
                )
        except Exception as status_error:
            # The handler error is what the queue needs to see
            logger.error(
                "Could not record job failure",
                document_id=document.id,
                error=str(status_error),
                error_type=type(status_error).__name__,
            )

        logger.error(
            "Job failed",
            document_id=document.id,
            final=final,
            error=str(error),
            error_type=type(error).__name__,
        )
