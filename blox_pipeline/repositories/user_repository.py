"""
Read-only access to the identity collaborator's tables.
"""

from blox_pipeline.db.helpers import fetch_all, fetch_one
from blox_pipeline.models.domain.pipeline_domain import UserContact


class UserRepository:
    @classmethod
    async def load_contact(cls, user_id: str) -> UserContact | None:
        row = await fetch_one("SELECT id, email, full_name FROM users WHERE id = %s", (user_id,))
        if not row:
            return None
        return UserContact(id=str(row["id"]), email=row["email"], full_name=row.get("full_name"))

    @classmethod
    async def oauth_tokens(cls, user_id: str, providers: list[str]) -> dict[str, str]:
        """Stored access tokens for the given providers, keyed by provider."""
        rows = await fetch_all(
            """
            SELECT provider, access_token FROM oauth_connections
            WHERE user_id = %s AND provider = ANY(%s)
            """,
            (user_id, providers),
        )
        return {row["provider"]: row["access_token"] for row in rows if row.get("access_token")}
