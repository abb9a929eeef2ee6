"""
Algorithmic content critique.

All four sub-scores are derived from the document's semantic content:

    completeness = share of sections whose serialized form exceeds 50 chars
    readability  = min(95, 50 + length / 500)
    ats          = min(95, 55 + completeness * 0.4)
    seo          = min(90, 45 + length / 600)

and `overall` is their mean. Rounding is half-up throughout.
"""

from dataclasses import dataclass, field
from typing import Any

from blox_pipeline.models.domain.sections import semantic_content, serialize_content
from blox_pipeline.scoring.common import round_half_up

FILLED_SECTION_MIN_CHARS = 50
IMPROVEMENT_THRESHOLD = 70

IMPROVEMENT_HINTS = {
    "completeness": "Fill in all sections for a complete profile",
    "readability": "Use shorter, more impactful sentences",
    "ats": "Add industry-standard keywords and section headings",
    "seo": "Include target keywords in your summary",
}


@dataclass(slots=True)
class CritiqueScores:
    completeness: int
    readability: int
    ats: int
    seo: int
    overall: int
    improvements: list[str] = field(default_factory=list)

    def to_content(self, ai_suggestions: str | None, generated_at: str) -> dict[str, Any]:
        """Shape stored under content.critique."""
        return {
            "overallScore": self.overall,
            "readability": self.readability,
            "ats": self.ats,
            "seo": self.seo,
            "completeness": self.completeness,
            "aiSuggestions": ai_suggestions or None,
            "improvements": self.improvements,
            "critiqueGeneratedAt": generated_at,
        }


def _sections(content: dict[str, Any]) -> list[Any]:
    sections = content.get("sections")
    return sections if isinstance(sections, list) else []


def score_content(content: dict[str, Any]) -> CritiqueScores:
    semantic = semantic_content(content)
    content_length = len(serialize_content(semantic))
    sections = _sections(semantic)

    filled = [s for s in sections if len(serialize_content(s)) > FILLED_SECTION_MIN_CHARS]
    completeness = round_half_up(len(filled) / max(len(sections), 1) * 100)
    readability = min(95, round_half_up(50 + content_length / 500))
    ats = min(95, round_half_up(55 + completeness * 0.4))
    seo = min(90, round_half_up(45 + content_length / 600))
    overall = round_half_up((completeness + readability + ats + seo) / 4)

    scores = {"completeness": completeness, "readability": readability, "ats": ats, "seo": seo}
    improvements = [
        IMPROVEMENT_HINTS[name] for name, value in scores.items() if value < IMPROVEMENT_THRESHOLD
    ]

    return CritiqueScores(**scores, overall=overall, improvements=improvements)
