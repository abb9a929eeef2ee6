"""
Provider-neutral profile shapes used by the import-unify job.
"""

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(slots=True)
class ProviderProfile:
    """One provider's profile normalized to the common shape."""

    provider: str
    name: str = ""
    headline: str = ""
    bio: str = ""
    skills: list[str] = field(default_factory=list)
    experience: list[dict[str, Any]] = field(default_factory=list)
    education: list[dict[str, Any]] = field(default_factory=list)
    projects: list[dict[str, Any]] = field(default_factory=list)
    links: dict[str, str] = field(default_factory=dict)
    profile_image_url: str = ""


@dataclass(slots=True)
class MergeConflict:
    field: str
    recommended_provider: str
    recommended_value: str
    candidates: list[dict[str, str]]


@dataclass(slots=True)
class MergedProfile:
    name: str = ""
    headline: str = ""
    bio: str = ""
    about: str = ""
    skills: list[str] = field(default_factory=list)
    experience: list[dict[str, Any]] = field(default_factory=list)
    education: list[dict[str, Any]] = field(default_factory=list)
    projects: list[dict[str, Any]] = field(default_factory=list)
    links: dict[str, str] = field(default_factory=dict)
    profile_image_url: str = ""
    persona: str = "Professional"
    sources: list[str] = field(default_factory=list)
    conflicts: list[MergeConflict] = field(default_factory=list)
    seo_keywords: list[str] = field(default_factory=list)
    autofill_score: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
