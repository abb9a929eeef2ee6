"""
duplicate: tailor a freshly copied document to a job description.

The copy already holds the source content. The handler records tailoring
advice under content.tailoring: AI suggestions when available, otherwise
the job-description keywords the document is missing.
"""

from typing import Any

from blox_pipeline.config import settings
from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.errors import TransientExternalError
from blox_pipeline.jobs.handlers.base import DocumentJobHandler, utc_now_iso
from blox_pipeline.jobs.payloads import DuplicatePayload
from blox_pipeline.jobs.queue import JobEnvelope
from blox_pipeline.models.domain.pipeline_domain import Document, Topic
from blox_pipeline.scoring.ats import document_text, keyword_match

logger = get_logger(__name__)

PROMPT_CHARS = 2000


def fallback_suggestions(missing_keywords: list[str]) -> list[str]:
    return [f'Mention "{word}" where it reflects your experience' for word in missing_keywords]


class DuplicateHandler(DocumentJobHandler):
    topic = Topic.DUPLICATE

    async def ai_suggestions(self, document: Document, job_description: str) -> list[str] | None:
        prompt = (
            f"Suggest how to tailor this {document.type.value} to the job description below. "
            "Answer with one concrete change per line.\n"
            f"Job description:\n{job_description[:PROMPT_CHARS]}\n"
            f"Content:\n{document_text(document.content)[:PROMPT_CHARS]}"
        )
        try:
            text = await self.ai.generate(
                prompt,
                asset_type=document.type.value,
                timeout=settings.AI_SUGGESTION_TIMEOUT_SECONDS,
            )
        except TransientExternalError as e:
            logger.warning("AI unavailable, tailoring from keywords", document_id=document.id, error=str(e))
            return None
        lines = [line.strip(" -*\t") for line in text.split("\n")]
        return [line for line in lines if line] or None

    async def run(
        self, job: JobEnvelope, payload: DuplicatePayload, document: Document
    ) -> dict[str, Any]:
        match = keyword_match(document_text(document.content), payload.job_description)
        suggestions = await self.ai_suggestions(document, payload.job_description)
        generated_by = "ai" if suggestions else "fallback"

        tailoring = {
            "sourceDocumentId": payload.source_document_id,
            "matchScore": match.score,
            "missingKeywords": match.missing,
            "suggestions": suggestions or fallback_suggestions(match.missing),
            "generatedBy": generated_by,
            "tailoredAt": utc_now_iso(),
        }

        await self.documents.update_content(document.id, lambda _: {"tailoring": tailoring})
        await self.notifications.create(
            user_id=payload.user_id,
            type="asset_tailored",
            title="Your tailored copy is ready!",
            payload={
                "documentId": document.id,
                "sourceDocumentId": payload.source_document_id,
                "matchScore": match.score,
            },
            source_job_id=job.id,
        )

        return {"documentId": document.id, "matchScore": match.score, "generatedBy": generated_by}
