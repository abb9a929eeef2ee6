"""
Merge normalized provider profiles into one import preview.

Providers are applied in the order they were requested:
  - name, headline, bio, profile image: first non-empty value wins
  - skills: concatenated, exact duplicates dropped, first occurrence kept
  - experience, education, projects: concatenated as-is
  - links: shallow merge, later providers overwrite earlier keys

The "about" text is written afterwards by the import job: AI copy in the
persona's tone when it is long enough, a template otherwise.
"""

from blox_pipeline.models.domain.profile_domain import MergeConflict, MergedProfile, ProviderProfile
from blox_pipeline.scoring.common import round_half_up

SCALAR_FIELDS = ("name", "headline", "bio", "profile_image_url")
LIST_FIELDS = ("experience", "education", "projects")
CONFLICT_FIELDS = ("name", "headline")
MAX_SEO_KEYWORDS = 16
ABOUT_MIN_CHARS = 120
ABOUT_MIN_WORDS = 70
ABOUT_TEMPLATE_SKILLS = 8

PERSONA_TONES = {
    "Freelancer": "confident for freelancers",
    "Designer": "creative and product-minded",
    "Developer": "technical and concise",
    "Executive": "strategic and high-impact",
    "Student": "growth-oriented and proactive",
}
DEFAULT_TONE = "professional and clear"


def merge_profiles(profiles: list[ProviderProfile], persona: str = "Professional") -> MergedProfile:
    merged = MergedProfile(persona=persona)

    for profile in profiles:
        merged.sources.append(profile.provider)
        for name in SCALAR_FIELDS:
            if not getattr(merged, name) and getattr(profile, name):
                setattr(merged, name, getattr(profile, name))
        merged.skills.extend(profile.skills)
        for name in LIST_FIELDS:
            getattr(merged, name).extend(getattr(profile, name))
        merged.links.update(profile.links)

    merged.skills = list(dict.fromkeys(merged.skills))
    merged.conflicts = find_conflicts(profiles)
    merged.seo_keywords = seo_keywords(merged.headline, merged.skills)
    merged.autofill_score = autofill_score(merged)
    return merged


def find_conflicts(profiles: list[ProviderProfile]) -> list[MergeConflict]:
    """Fields where providers disagree (case-insensitively); the first value is recommended."""
    conflicts = []
    for name in CONFLICT_FIELDS:
        candidates = [
            {"provider": profile.provider, "value": getattr(profile, name)}
            for profile in profiles
            if getattr(profile, name)
        ]
        if len({candidate["value"].lower() for candidate in candidates}) > 1:
            conflicts.append(
                MergeConflict(
                    field=name,
                    recommended_provider=candidates[0]["provider"],
                    recommended_value=candidates[0]["value"],
                    candidates=candidates,
                )
            )
    return conflicts


def autofill_score(merged: MergedProfile) -> int:
    """Share of seven portfolio prerequisites the import filled in."""
    checks = [
        bool(merged.name),
        bool(merged.headline),
        len(merged.about or merged.bio) > ABOUT_MIN_CHARS,
        len(merged.skills) >= 6,
        len(merged.projects) >= 2,
        bool(merged.links),
        bool(merged.profile_image_url),
    ]
    return round_half_up(sum(checks) / len(checks) * 100)


def seo_keywords(headline: str, skills: list[str]) -> list[str]:
    tokens = [token.strip().lower() for token in [*headline.split(), *skills]]
    unique = dict.fromkeys(token for token in tokens if len(token) > 2)
    return list(unique)[:MAX_SEO_KEYWORDS]


def persona_tone(persona: str) -> str:
    return PERSONA_TONES.get(persona, DEFAULT_TONE)


def about_prompt(merged: MergedProfile, profiles: list[ProviderProfile]) -> str:
    bios = {profile.provider: profile.bio for profile in profiles if profile.bio}
    skills = ", ".join(merged.skills)
    source = "\n".join(
        part for part in (bios.get("linkedin"), merged.headline, bios.get("upwork"), skills) if part
    )
    return "\n".join(
        [
            "Refine this user professional bio into a compelling, SEO-optimized About section "
            "for a portfolio (150-300 words).",
            "Make it first-person, engaging, and achievement-focused.",
            f"Tone: {persona_tone(merged.persona)}.",
            f"Name: {merged.name}",
            f"Headline: {merged.headline}",
            f"LinkedIn Summary: {bios.get('linkedin', '')}",
            f"Upwork Overview: {bios.get('upwork', '')}",
            f"Skills: {skills}",
            f"Fallback source: {source}",
            "Output only final text.",
        ]
    )


def is_usable_about(text: str) -> bool:
    return len(text.split()) >= ABOUT_MIN_WORDS


def fallback_about(merged: MergedProfile) -> str:
    skills = ", ".join(merged.skills[:ABOUT_TEMPLATE_SKILLS])
    return (
        f"Hi, I'm {merged.name}. {merged.headline}. I focus on delivering measurable outcomes "
        f"and building high-quality work across {skills}. I combine strong execution, clear "
        "communication, and a pragmatic approach to ship work that creates real impact."
    )
