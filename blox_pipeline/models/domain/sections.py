"""
Section schemas per document type.

Each document type has a fixed, ordered list of section kinds. Generated
text is mapped positionally onto that list.
"""

import json
from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import Any

from blox_pipeline.models.domain.pipeline_domain import DocumentType


class SectionKind(StrEnum):
    HERO = "hero"
    ABOUT = "about"
    WORK = "work"
    PROJECTS = "projects"
    SKILLS = "skills"
    CONTACT = "contact"
    SUMMARY = "summary"
    EXPERIENCE = "experience"
    EDUCATION = "education"
    OPENING = "opening"
    BODY = "body"
    CLOSING = "closing"

    @property
    def placeholder(self) -> str:
        return f"{self.value.capitalize()} section"


SECTION_SCHEMAS: dict[DocumentType, tuple[SectionKind, ...]] = {
    DocumentType.PORTFOLIO: (
        SectionKind.HERO,
        SectionKind.ABOUT,
        SectionKind.WORK,
        SectionKind.PROJECTS,
        SectionKind.SKILLS,
        SectionKind.CONTACT,
    ),
    DocumentType.RESUME: (
        SectionKind.SUMMARY,
        SectionKind.EXPERIENCE,
        SectionKind.EDUCATION,
        SectionKind.SKILLS,
    ),
    DocumentType.COVER_LETTER: (
        SectionKind.OPENING,
        SectionKind.BODY,
        SectionKind.CLOSING,
    ),
}

# Keys the pipeline writes into content that are results, not authored text.
PIPELINE_RESULT_KEYS = frozenset({"critique", "atsResult", "tailoring"})

# Generation bookkeeping; counted in length scores but never scanned as text.
GENERATION_METADATA_KEYS = frozenset({"generatedAt", "generatedBy"})


@dataclass(slots=True)
class Section:
    id: str
    type: SectionKind
    content: str

    def to_dict(self) -> dict[str, str]:
        data = asdict(self)
        data["type"] = self.type.value
        return data


def section_kinds(document_type: DocumentType | str) -> tuple[SectionKind, ...]:
    return SECTION_SCHEMAS[DocumentType.parse(document_type)]


def map_lines_to_sections(document_type: DocumentType | str, text: str) -> list[Section]:
    """Assign the i-th non-blank line to the i-th section, placeholders after that."""
    lines = [line for line in text.split("\n") if line.strip()]
    sections = []
    for index, kind in enumerate(section_kinds(document_type)):
        body = lines[index] if index < len(lines) else kind.placeholder
        sections.append(Section(id=f"section-{index}", type=kind, content=body))
    return sections


def serialize_content(content: Any) -> str:
    """Compact JSON, the form every length-based score is measured against."""
    return json.dumps(content, separators=(",", ":"), ensure_ascii=False, default=str)


def semantic_content(content: dict[str, Any]) -> dict[str, Any]:
    """Content without previously stored pipeline results."""
    return {key: value for key, value in content.items() if key not in PIPELINE_RESULT_KEYS}
