"""
SEO audit over a document's stored SEO metadata.

Each check has a single range; its label is generated from the same
constants the pass/fail test uses.
"""

from dataclasses import dataclass
from typing import Any

from blox_pipeline.models.domain.sections import semantic_content, serialize_content
from blox_pipeline.scoring.common import Check, weighted_score

TITLE_MIN, TITLE_MAX = 30, 70
DESCRIPTION_MIN, DESCRIPTION_MAX = 80, 200
MIN_KEYWORDS = 3
MIN_CONTENT_CHARS = 500


@dataclass(slots=True)
class SeoAudit:
    score: int
    checks: list[Check]

    @property
    def suggestions(self) -> list[str]:
        return [
            f"Improve {check.label} (current: {check.current})"
            for check in self.checks
            if not check.passed
        ]

    def to_seo_config(self, audited_at: str) -> dict[str, Any]:
        """Keys merged into the document's seo_config."""
        return {
            "auditScore": self.score,
            "auditChecks": [check.to_dict() for check in self.checks],
            "auditSuggestions": self.suggestions,
            "auditedAt": audited_at,
        }


def _string(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def audit(seo_config: dict[str, Any], title: str, content: dict[str, Any]) -> SeoAudit:
    seo_title = _string(seo_config.get("title"), title)
    description = _string(seo_config.get("description"))
    keywords = seo_config.get("keywords")
    keyword_count = len(keywords) if isinstance(keywords, list) else 0
    content_length = len(serialize_content(semantic_content(content)))
    og_image = bool(seo_config.get("ogImage"))
    structured = bool(seo_config.get("structuredData"))

    checks = [
        Check(
            "title_length",
            f"Title is {TITLE_MIN}-{TITLE_MAX} characters",
            20,
            TITLE_MIN <= len(seo_title) <= TITLE_MAX,
            f"{len(seo_title)} chars",
        ),
        Check(
            "description",
            f"Has meta description ({DESCRIPTION_MIN}-{DESCRIPTION_MAX} chars)",
            20,
            DESCRIPTION_MIN <= len(description) <= DESCRIPTION_MAX,
            f"{len(description)} chars",
        ),
        Check(
            "has_keywords",
            f"Has at least {MIN_KEYWORDS} target keywords",
            15,
            keyword_count >= MIN_KEYWORDS,
            f"{keyword_count} keywords",
        ),
        Check(
            "content_length",
            f"Sufficient content (more than {MIN_CONTENT_CHARS} chars)",
            20,
            content_length > MIN_CONTENT_CHARS,
            f"{content_length} chars",
        ),
        Check("has_og_image", "Has Open Graph image", 15, og_image, "set" if og_image else "missing"),
        Check(
            "structured_data",
            "Has structured data hints",
            10,
            structured,
            "set" if structured else "missing",
        ),
    ]
    return SeoAudit(score=weighted_score(checks), checks=checks)
