from typing import Any

from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.handlers.base import DocumentJobHandler, utc_now_iso
from blox_pipeline.jobs.payloads import DocumentCheckPayload
from blox_pipeline.jobs.queue import JobEnvelope
from blox_pipeline.models.domain.pipeline_domain import Document, Topic
from blox_pipeline.scoring.seo import audit

logger = get_logger(__name__)


class SeoAuditHandler(DocumentJobHandler):
    topic = Topic.SEO_AUDIT

    async def run(
        self, job: JobEnvelope, payload: DocumentCheckPayload, document: Document
    ) -> dict[str, Any]:
        result = audit(document.seo_config, document.title, document.content)
        patch = result.to_seo_config(utc_now_iso())

        await self.documents.update_content(document.id, lambda _: patch, field="seo_config")
        await self.notifications.create(
            user_id=payload.user_id,
            type="seo_audit_ready",
            title=f"SEO Audit complete - Score: {result.score}/100",
            payload={
                "documentId": document.id,
                "score": result.score,
                "suggestions": len(result.suggestions),
            },
            source_job_id=job.id,
        )

        logger.info("SEO audit scored", document_id=document.id, score=result.score)
        return {"documentId": document.id, "score": result.score, "suggestions": result.suggestions}
