"""
Job producer used by the API: validate a request, write the provisional
state the client will poll, then enqueue the typed payload.
"""

import re
from typing import Any
from uuid import uuid4

from pydantic import ValidationError

from blox_pipeline.config import settings
from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.errors import (
    InvalidRequestError,
    JobConflictError,
    StatusTransitionError,
)
from blox_pipeline.jobs.payloads import (
    BillingEvent,
    BillingNotifyPayload,
    DocumentCheckPayload,
    DuplicatePayload,
    GeneratePayload,
    ImportUnifyPayload,
    JobPayload,
    PublishPayload,
)
from blox_pipeline.jobs.queue import QueueError, job_queue
from blox_pipeline.models.domain.pipeline_domain import Document, JobStatus, Topic
from blox_pipeline.repositories.document_repository import DocumentRepository
from blox_pipeline.repositories.import_run_repository import ImportRunRepository
from blox_pipeline.repositories.publish_repository import PublishRepository
from blox_pipeline.services.profile_providers import ALLOWED_PROVIDERS

logger = get_logger(__name__)

CHECK_TOPICS = frozenset({Topic.CRITIQUE, Topic.ATS_SCAN, Topic.SEO_AUDIT})
RESERVED_SUBDOMAINS = frozenset(
    {
        "dashboard",
        "signup",
        "login",
        "settings",
        "templates",
        "scanner",
        "marketplace",
        "help",
        "pricing",
        "api",
        "www",
    }
)
SUBDOMAIN_INVALID_CHARS = re.compile(r"[^a-z0-9-]")
TAILORED_SUFFIX = " (Tailored)"


def normalize_subdomain(subdomain: str) -> str:
    return SUBDOMAIN_INVALID_CHARS.sub("-", subdomain.strip().lower())


class JobProducer:
    def __init__(
        self,
        queue=None,
        *,
        documents=DocumentRepository,
        runs=ImportRunRepository,
        targets=PublishRepository,
    ):
        self.queue = queue or job_queue
        self.documents = documents
        self.runs = runs
        self.targets = targets

    async def _queue_document_job(
        self, document: Document, topic: Topic, build_payload
    ) -> dict[str, str]:
        """
        Flip the document to queued under a fresh job id and enqueue.

        build_payload receives nothing and returns the JobPayload; it is only
        called once the status write succeeded.
        """
        if document.job_status.is_active:
            raise JobConflictError(
                f"Document {document.id} already has a {document.job_status.value} job",
                operation=f"queue_{topic.value}",
            )

        job_id = str(uuid4())
        try:
            await self.documents.set_job_status(
                document.id, JobStatus.QUEUED, job_id=job_id, topic=topic.value
            )
        except StatusTransitionError as e:
            raise JobConflictError(
                f"Document {document.id} already has an active job", operation=f"queue_{topic.value}"
            ) from e

        payload: JobPayload = build_payload()
        try:
            await self.queue.enqueue(topic, payload.to_wire(), job_id=job_id)
        except QueueError as e:
            await self._abandon_document_job(document.id, job_id, str(e))
            raise

        logger.info("Document job queued", document_id=document.id, topic=topic.value, job_id=job_id)
        return {"jobId": job_id, "status": JobStatus.QUEUED.value}

    async def _abandon_document_job(self, document_id: str, job_id: str, reason: str) -> None:
        """A job that never reached the queue still ends in `failed` through `processing`."""
        try:
            await self.documents.set_job_status(document_id, JobStatus.PROCESSING, job_id=job_id)
            await self.documents.set_job_status(
                document_id, JobStatus.FAILED, job_id=job_id, message=f"Could not queue job: {reason}"
            )
        except Exception as e:
            logger.error("Could not mark unqueued job failed", document_id=document_id, error=str(e))

    async def request_generation(self, document_id: str, user_id: str, prompt: str) -> dict[str, str]:
        if not prompt.strip():
            raise InvalidRequestError("A prompt is required", operation="request_generation")

        document = await self.documents.require(document_id, user_id)
        return await self._queue_document_job(
            document,
            Topic.GENERATE,
            lambda: GeneratePayload(
                document_id=document.id,
                type=document.type.value,
                prompt=prompt.strip(),
                user_id=user_id,
            ),
        )

    async def request_document_check(
        self,
        topic: Topic | str,
        document_id: str,
        user_id: str,
        job_description: str | None = None,
    ) -> dict[str, str]:
        """Queue a critique, ats-scan or seo-audit job."""
        topic = Topic(topic)
        if topic not in CHECK_TOPICS:
            raise InvalidRequestError(f"{topic.value} is not a document check", operation="request_check")

        document = await self.documents.require(document_id, user_id)
        return await self._queue_document_job(
            document,
            topic,
            lambda: DocumentCheckPayload(
                document_id=document.id,
                user_id=user_id,
                job_description=(job_description or "").strip() or None,
            ),
        )

    async def request_tailored_copy(
        self, document_id: str, user_id: str, job_description: str | None = None
    ) -> dict[str, Any]:
        """
        Copy the document as "<title> (Tailored)" and, with a job
        description, queue a duplicate job against the copy.
        """
        source = await self.documents.require(document_id, user_id)
        copy = await self.documents.create_copy(source, f"{source.title}{TAILORED_SUFFIX}")

        job: dict[str, str] | None = None
        description = (job_description or "").strip()
        if description:
            job = await self._queue_document_job(
                copy,
                Topic.DUPLICATE,
                lambda: DuplicatePayload(
                    document_id=copy.id,
                    source_document_id=source.id,
                    user_id=user_id,
                    job_description=description,
                ),
            )

        return {"document": copy, "job": job}

    async def start_import(
        self,
        user_id: str,
        providers: list[str],
        *,
        oauth_tokens: dict[str, str] | None = None,
        persona: str = "Professional",
        manual_fallback: dict[str, dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        requested = list(dict.fromkeys(p.strip().lower() for p in providers if p and p.strip()))
        if not requested:
            raise InvalidRequestError("Select at least one provider", operation="start_import")
        unknown = [p for p in requested if p not in ALLOWED_PROVIDERS]
        if unknown:
            raise InvalidRequestError(
                f"Unsupported providers: {', '.join(unknown)}", operation="start_import"
            )

        run = await self.runs.create(user_id, requested)
        job_id = str(uuid4())
        payload = ImportUnifyPayload(
            run_id=run.id,
            user_id=user_id,
            providers=requested,
            oauth_tokens=oauth_tokens or None,
            persona=persona,
            manual_fallback=manual_fallback or None,
        )

        await self.runs.set_queue_job_id(run.id, job_id)
        try:
            await self.queue.enqueue(Topic.IMPORT_UNIFY, payload.to_wire(), job_id=job_id)
        except QueueError as e:
            await self.runs.update(run.id, status=JobStatus.PROCESSING)
            await self.runs.update(run.id, status=JobStatus.FAILED, message=f"Could not queue import: {e}")
            raise

        logger.info("Import queued", run_id=run.id, job_id=job_id, providers=requested)
        return {"runId": run.id, "jobId": job_id, "status": JobStatus.QUEUED.value}

    async def request_publish(
        self,
        document_id: str,
        user_id: str,
        subdomain: str,
        custom_domain: str | None = None,
    ) -> dict[str, Any]:
        document = await self.documents.require(document_id, user_id)

        slug = normalize_subdomain(subdomain)
        if not slug.strip("-") or slug in RESERVED_SUBDOMAINS:
            raise InvalidRequestError("This subdomain is reserved", operation="request_publish")
        if await self.targets.subdomain_taken(slug, document.id):
            raise JobConflictError("Subdomain is already taken", operation="request_publish")

        custom_domain = (custom_domain or "").strip().lower() or None
        target = await self.targets.upsert_inactive(document.id, slug, custom_domain)

        payload = PublishPayload(
            document_id=document.id,
            user_id=user_id,
            subdomain=slug,
            custom_domain=custom_domain,
            target_id=target.id,
        )
        job_id = await self.queue.enqueue(Topic.PUBLISH, payload.to_wire())

        published_url = settings.public_url(slug, custom_domain)
        await self.documents.set_publication(
            document.id, visibility=document.visibility, published_url=published_url, slug=slug
        )

        return {
            "jobId": job_id,
            "status": "publishing",
            "documentId": document.id,
            "subdomain": slug,
            "customDomain": custom_domain,
            "publishedUrl": published_url,
        }

    async def notify_billing(
        self,
        user_id: str,
        event: BillingEvent,
        *,
        tier: str | None = None,
        days_remaining: int | None = None,
    ) -> str:
        try:
            payload = BillingNotifyPayload(
                user_id=user_id, event=event, tier=tier, days_remaining=days_remaining
            )
        except ValidationError as e:
            raise InvalidRequestError(f"Unknown billing event: {event}", operation="notify_billing") from e
        return await self.queue.enqueue(Topic.BILLING_NOTIFY, payload.to_wire())


job_producer = JobProducer()
