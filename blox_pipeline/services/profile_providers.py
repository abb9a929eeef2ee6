"""
Third-party profile fetchers for the import-unify job.

Each provider with an API is called with the user's OAuth token and its
response normalized into a ProviderProfile. Providers without an API (or
without a token) can only be filled from manually supplied data.
"""

import asyncio
from typing import Any

import httpx

from blox_pipeline.config import settings
from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.errors import TransientExternalError
from blox_pipeline.models.domain.profile_domain import ProviderProfile

logger = get_logger(__name__)

ALLOWED_PROVIDERS = frozenset(
    {"linkedin", "github", "upwork", "fiverr", "behance", "dribbble", "figma", "coursera"}
)
API_PROVIDERS = frozenset({"linkedin", "github", "upwork"})

GITHUB_API = "https://api.github.com"
LINKEDIN_API = "https://api.linkedin.com/v2"
UPWORK_PROFILE_QUERY = (
    "query ImportProfile { profile { identity { fullName title overview picture } "
    "skills { nodes { name } } } }"
)


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _text_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [item for item in (_text(v) for v in value) if item]
    if isinstance(value, str):
        return [item.strip() for item in value.replace("\n", ",").split(",") if item.strip()]
    return []


def _records(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


class ProfileProviderClient:
    """Fetches and normalizes provider profiles over httpx."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(settings.PROVIDER_TIMEOUT_SECONDS), transport=self._transport
        )

    async def fetch(self, provider: str, token: str) -> ProviderProfile:
        """
        Fetch one provider's profile.

        Raises:
            TransientExternalError: transport failure, timeout, non-2xx or a
                body that is not the expected JSON shape
            ValueError: provider has no API integration
        """
        fetchers = {
            "github": self._fetch_github,
            "linkedin": self._fetch_linkedin,
            "upwork": self._fetch_upwork,
        }
        if provider not in fetchers:
            raise ValueError(f"Provider {provider} has no API integration")

        try:
            async with self._client() as client:
                return await fetchers[provider](client, token)
        except httpx.HTTPStatusError as e:
            raise TransientExternalError(
                f"{provider} returned {e.response.status_code}",
                service=provider,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise TransientExternalError(f"{provider} request failed: {e}", service=provider) from e
        except (ValueError, TypeError, AttributeError, KeyError) as e:
            raise TransientExternalError(
                f"{provider} returned an unreadable profile: {type(e).__name__}", service=provider
            ) from e

    async def _fetch_github(self, client: httpx.AsyncClient, token: str) -> ProviderProfile:
        headers = {"Authorization": f"token {token}", "Accept": "application/vnd.github+json"}
        user_res, repos_res = await asyncio.gather(
            client.get(f"{GITHUB_API}/user", headers=headers),
            client.get(
                f"{GITHUB_API}/user/repos", headers=headers, params={"sort": "updated", "per_page": 12}
            ),
        )
        user_res.raise_for_status()
        repos_res.raise_for_status()
        user = user_res.json()
        repos = [repo for repo in repos_res.json() if isinstance(repo, dict)]

        projects = [
            {
                "name": _text(repo.get("name")) or "Project",
                "description": _text(repo.get("description")) or "Open-source project",
                "url": _text(repo.get("html_url")),
            }
            for repo in repos[:8]
        ]
        languages = [_text(repo.get("language")) for repo in repos]
        skills = list(dict.fromkeys(lang for lang in languages if lang))

        return ProviderProfile(
            provider="github",
            name=_text(user.get("name")) or _text(user.get("login")),
            bio=_text(user.get("bio")),
            skills=skills,
            projects=projects,
            links={"github": user["html_url"]} if _text(user.get("html_url")) else {},
            profile_image_url=_text(user.get("avatar_url")),
        )

    async def _fetch_linkedin(self, client: httpx.AsyncClient, token: str) -> ProviderProfile:
        res = await client.get(f"{LINKEDIN_API}/me", headers={"Authorization": f"Bearer {token}"})
        res.raise_for_status()
        data = res.json()

        name = f"{_text(data.get('localizedFirstName'))} {_text(data.get('localizedLastName'))}"
        member_id = _text(data.get("id"))
        return ProviderProfile(
            provider="linkedin",
            name=name.strip(),
            headline=_text(data.get("localizedHeadline")),
            bio=_text(data.get("summary")),
            links={"linkedin": f"https://www.linkedin.com/in/{member_id}"} if member_id else {},
        )

    async def _fetch_upwork(self, client: httpx.AsyncClient, token: str) -> ProviderProfile:
        res = await client.post(
            settings.UPWORK_GRAPHQL_URL,
            json={"query": UPWORK_PROFILE_QUERY},
            headers={"Authorization": f"Bearer {token}"},
        )
        res.raise_for_status()
        profile = ((res.json() or {}).get("data") or {}).get("profile") or {}
        identity = profile.get("identity") or {}
        nodes = _records((profile.get("skills") or {}).get("nodes"))

        return ProviderProfile(
            provider="upwork",
            name=_text(identity.get("fullName")),
            headline=_text(identity.get("title")),
            bio=_text(identity.get("overview")),
            skills=[name for name in (_text(node.get("name")) for node in nodes) if name][:15],
            profile_image_url=_text(identity.get("picture")),
        )


def profile_from_manual(provider: str, data: dict[str, Any]) -> ProviderProfile:
    """Normalize user-supplied data for a provider we could not call."""
    links = data.get("links") if isinstance(data.get("links"), dict) else {}
    return ProviderProfile(
        provider=provider,
        name=_text(data.get("name")),
        headline=_text(data.get("headline")),
        bio=_text(data.get("bio")) or _text(data.get("summary")),
        skills=_text_list(data.get("skills")),
        experience=_records(data.get("experience")),
        education=_records(data.get("education")),
        projects=_records(data.get("projects")),
        links={str(k): _text(v) for k, v in links.items() if _text(v)},
        profile_image_url=_text(data.get("profileImageUrl")),
    )


profile_provider_client = ProfileProviderClient()
