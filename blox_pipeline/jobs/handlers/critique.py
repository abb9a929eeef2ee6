from typing import Any

from blox_pipeline.config import settings
from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.errors import TransientExternalError
from blox_pipeline.jobs.handlers.base import DocumentJobHandler, utc_now_iso
from blox_pipeline.jobs.payloads import DocumentCheckPayload
from blox_pipeline.jobs.queue import JobEnvelope
from blox_pipeline.models.domain.pipeline_domain import Document, Topic
from blox_pipeline.models.domain.sections import semantic_content, serialize_content
from blox_pipeline.scoring.critique import score_content

logger = get_logger(__name__)

PROMPT_CONTENT_CHARS = 2000


class CritiqueHandler(DocumentJobHandler):
    topic = Topic.CRITIQUE

    async def suggestions(self, document: Document) -> str | None:
        """Free-text AI suggestions; None when the AI service is unavailable."""
        excerpt = serialize_content(semantic_content(document.content))[:PROMPT_CONTENT_CHARS]
        try:
            return await self.ai.generate(
                f"Critique this professional {document.type.value} content and provide "
                f"specific improvement suggestions:\n{excerpt}",
                asset_type=document.type.value,
                timeout=settings.AI_CRITIQUE_TIMEOUT_SECONDS,
            )
        except TransientExternalError as e:
            logger.warning("AI unavailable, using algorithmic critique only", error=str(e))
            return None

    async def run(
        self, job: JobEnvelope, payload: DocumentCheckPayload, document: Document
    ) -> dict[str, Any]:
        scores = score_content(document.content)
        ai_text = await self.suggestions(document)
        critique = scores.to_content(ai_text, utc_now_iso())

        await self.documents.update_content(
            document.id, lambda _: {"critique": critique}, health_score=scores.overall
        )
        await self.notifications.create(
            user_id=payload.user_id,
            type="critique_ready",
            title=f"Critique complete - Score: {scores.overall}/100",
            payload={"documentId": document.id, "score": scores.overall},
            source_job_id=job.id,
        )

        logger.info("Critique scored", document_id=document.id, score=scores.overall)
        return {"documentId": document.id, "score": scores.overall}
