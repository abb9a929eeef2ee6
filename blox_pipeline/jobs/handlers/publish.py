"""
publish: activate a publish target and make its document public.

Every write is idempotent (activation keeps the first published_at, the
notification is keyed by job id), so redelivery converges on the same state.
"""

from typing import Any

from blox_pipeline.config import settings
from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.errors import InvalidPayloadError, NotFoundError
from blox_pipeline.jobs.handlers.base import JobHandlerBase
from blox_pipeline.jobs.payloads import PublishPayload
from blox_pipeline.jobs.queue import JobEnvelope
from blox_pipeline.models.domain.pipeline_domain import Topic, Visibility
from blox_pipeline.repositories.publish_repository import PublishRepository

logger = get_logger(__name__)


class PublishHandler(JobHandlerBase):
    topic = Topic.PUBLISH

    def __init__(self, *, targets=PublishRepository, **kwargs):
        super().__init__(**kwargs)
        self.targets = targets

    async def __call__(self, job: JobEnvelope) -> dict[str, Any]:
        payload: PublishPayload = self.parse(job)
        await self.documents.require(payload.document_id, payload.user_id)

        target = await self.targets.load(payload.target_id)
        if target is None:
            raise NotFoundError(f"Publish target {payload.target_id} not found", operation="publish")
        if target.document_id != payload.document_id:
            raise InvalidPayloadError(
                f"Publish target {target.id} belongs to another document", operation="publish"
            )

        target = await self.targets.activate(target.id)
        url = settings.public_url(target.subdomain, target.custom_domain)
        await self.documents.set_publication(
            payload.document_id, visibility=Visibility.PUBLIC, published_url=url
        )
        await self.notifications.create(
            user_id=payload.user_id,
            type="asset_published",
            title="Your portfolio is live!",
            payload={"documentId": payload.document_id, "subdomain": target.subdomain, "url": url},
            source_job_id=job.id,
        )

        logger.info("Document published", document_id=payload.document_id, url=url)
        return {
            "documentId": payload.document_id,
            "subdomain": target.subdomain,
            "url": url,
            "publishedAt": target.published_at.isoformat() if target.published_at else None,
        }
