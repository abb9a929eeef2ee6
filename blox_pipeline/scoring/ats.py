"""
ATS compatibility checklist and job-description keyword matching.
"""

import re
from dataclasses import dataclass, field
from typing import Any

from blox_pipeline.models.domain.sections import (
    GENERATION_METADATA_KEYS,
    semantic_content,
    serialize_content,
)
from blox_pipeline.scoring.common import Check, round_half_up, weighted_score

ACTION_VERBS = re.compile(
    r"\b(led|built|managed|created|improved|developed|designed|achieved|delivered|launched)\b",
    re.ASCII,
)
QUANTIFIED = re.compile(r"\d+[%+x]|\$\d+|\d+\s*(users|customers|team|projects)", re.ASCII)
KEYWORD = re.compile(r"\b\w{4,}\b", re.ASCII)
MAX_MISSING_KEYWORDS = 10


def _contains_any(text: str, *needles: str) -> bool:
    return any(needle in text for needle in needles)


def run_checks(text: str) -> list[Check]:
    """Weighted checklist over lower-cased text; weights sum to 100."""
    return [
        Check("contact_info", "Has contact information", 15, _contains_any(text, "email", "@", "phone")),
        Check("summary", "Has professional summary", 15, _contains_any(text, "summary", "objective", "profile")),
        Check("experience", "Has work experience", 20, _contains_any(text, "experience", "work", "employment")),
        Check("education", "Has education section", 15, _contains_any(text, "education", "degree", "university")),
        Check("skills", "Has skills section", 15, "skill" in text),
        Check("action_verbs", "Uses action verbs", 10, bool(ACTION_VERBS.search(text))),
        Check("quantified", "Has quantified achievements", 10, bool(QUANTIFIED.search(text))),
    ]


@dataclass(slots=True)
class KeywordMatch:
    score: int
    matched: int
    missing: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"score": self.score, "matched": self.matched, "missing": self.missing}


def keyword_match(text: str, job_description: str) -> KeywordMatch:
    """Overlap of 4+ letter words; missing words keep their order in the job description."""
    job_words = list(dict.fromkeys(KEYWORD.findall(job_description.lower())))
    content_words = set(KEYWORD.findall(text.lower()))

    matched = sum(1 for word in job_words if word in content_words)
    missing = [word for word in job_words if word not in content_words][:MAX_MISSING_KEYWORDS]
    return KeywordMatch(
        score=round_half_up(matched / max(len(job_words), 1) * 100),
        matched=matched,
        missing=missing,
    )


@dataclass(slots=True)
class AtsResult:
    score: int
    checks: list[Check]
    keyword_match: KeywordMatch | None = None

    @property
    def failing(self) -> list[str]:
        return [check.label for check in self.checks if not check.passed]

    def to_content(self, scanned_at: str) -> dict[str, Any]:
        """Shape stored under content.atsResult."""
        return {
            "score": self.score,
            "checks": [check.to_dict() for check in self.checks],
            "failing": self.failing,
            "keywordMatch": self.keyword_match.to_dict() if self.keyword_match else None,
            "scannedAt": scanned_at,
        }


def document_text(content: dict[str, Any]) -> str:
    """Lowercased authored text; timestamps would otherwise read as quantified figures."""
    authored = {
        key: value for key, value in semantic_content(content).items() if key not in GENERATION_METADATA_KEYS
    }
    return serialize_content(authored).lower()


def scan_content(content: dict[str, Any], job_description: str | None = None) -> AtsResult:
    text = document_text(content)
    checks = run_checks(text)
    match = keyword_match(text, job_description) if job_description else None
    return AtsResult(score=weighted_score(checks), checks=checks, keyword_match=match)
