"""
generate: fill a document's sections from AI output, or from a fixed
template when the AI service is unavailable.
"""

from typing import Any

from blox_pipeline.config import settings
from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.errors import TransientExternalError
from blox_pipeline.jobs.handlers.base import DocumentJobHandler, utc_now_iso
from blox_pipeline.jobs.payloads import GeneratePayload
from blox_pipeline.jobs.queue import JobEnvelope
from blox_pipeline.models.domain.pipeline_domain import Document, DocumentType, Topic
from blox_pipeline.models.domain.sections import SectionKind, map_lines_to_sections, section_kinds

logger = get_logger(__name__)

VERSION_LABEL = "v1.0 (AI Generated)"
SCORE_PER_SECTION = 12
MAX_GENERATED_SCORE = 95

FALLBACK_TEXT: dict[SectionKind, str] = {
    SectionKind.HERO: "Professional portfolio for: {prompt}",
    SectionKind.ABOUT: "Experienced professional with strong skills.",
    SectionKind.WORK: "Selected work with measurable outcomes.",
    SectionKind.PROJECTS: "Key projects and the problems they solved.",
    SectionKind.SKILLS: "Leadership, Communication, Technical expertise.",
    SectionKind.CONTACT: "Get in touch to discuss new opportunities.",
    SectionKind.SUMMARY: "Professional summary for: {prompt}",
    SectionKind.EXPERIENCE: "Senior position with key achievements.",
    SectionKind.EDUCATION: "Relevant degree and certifications.",
    SectionKind.OPENING: "Application for: {prompt}",
    SectionKind.BODY: "My experience and skills match the needs of this role.",
    SectionKind.CLOSING: "Thank you for your time and consideration.",
}


def build_fallback_content(document_type: DocumentType | str, prompt: str) -> str:
    """One line per section of the type, so the mapping fills every section."""
    return "\n".join(
        FALLBACK_TEXT[kind].format(prompt=prompt.strip() or "a new role")
        for kind in section_kinds(document_type)
    )


def generated_health_score(section_count: int) -> int:
    return min(section_count * SCORE_PER_SECTION, MAX_GENERATED_SCORE)


class GenerateHandler(DocumentJobHandler):
    topic = Topic.GENERATE

    async def run(
        self, job: JobEnvelope, payload: GeneratePayload, document: Document
    ) -> dict[str, Any]:
        document_type = DocumentType.parse(payload.type)

        try:
            text = await self.ai.generate(
                f"Generate a {payload.type} for: {payload.prompt}",
                asset_type=document_type.value,
                timeout=settings.AI_GENERATE_TIMEOUT_SECONDS,
            )
            generated_by = "ai"
        except TransientExternalError as e:
            logger.warning("AI unavailable, using fallback content", document_id=document.id, error=str(e))
            text = build_fallback_content(document_type, payload.prompt)
            generated_by = "fallback"

        sections = [section.to_dict() for section in map_lines_to_sections(document_type, text)]
        health_score = generated_health_score(len(sections))

        await self.documents.update_content(
            document.id,
            lambda _: {
                "sections": sections,
                "generatedAt": utc_now_iso(),
                "generatedBy": generated_by,
            },
            health_score=health_score,
        )
        await self.versions.create_for_job(
            document_id=document.id,
            source_job_id=job.id,
            label=VERSION_LABEL,
            content={"sections": sections},
            created_by=payload.user_id,
        )
        await self.notifications.create(
            user_id=payload.user_id,
            type="asset_generated",
            title="Your content is ready!",
            payload={"documentId": document.id, "type": document_type.value},
            source_job_id=job.id,
        )

        return {
            "documentId": document.id,
            "sections": len(sections),
            "healthScore": health_score,
            "generatedBy": generated_by,
        }
