from typing import Any

from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.handlers.base import DocumentJobHandler, utc_now_iso
from blox_pipeline.jobs.payloads import DocumentCheckPayload
from blox_pipeline.jobs.queue import JobEnvelope
from blox_pipeline.models.domain.pipeline_domain import Document, Topic
from blox_pipeline.scoring.ats import scan_content

logger = get_logger(__name__)


class AtsScanHandler(DocumentJobHandler):
    topic = Topic.ATS_SCAN

    async def run(
        self, job: JobEnvelope, payload: DocumentCheckPayload, document: Document
    ) -> dict[str, Any]:
        result = scan_content(document.content, payload.job_description)
        stored = result.to_content(utc_now_iso())

        await self.documents.update_content(
            document.id, lambda _: {"atsResult": stored}, health_score=result.score
        )
        await self.notifications.create(
            user_id=payload.user_id,
            type="ats_scan_ready",
            title=f"ATS Scan complete - Score: {result.score}/100",
            payload={
                "documentId": document.id,
                "score": result.score,
                "failingChecks": len(result.failing),
            },
            source_job_id=job.id,
        )

        logger.info("ATS scan scored", document_id=document.id, score=result.score)
        return {"documentId": document.id, "score": result.score, "failing": result.failing}
