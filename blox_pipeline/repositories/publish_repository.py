"""
Publish targets: bindings of a document to a public subdomain.
"""

from uuid import uuid4

from blox_pipeline.db.helpers import fetch_one
from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.errors import NotFoundError
from blox_pipeline.models.domain.pipeline_domain import PublishTarget

logger = get_logger(__name__)


class PublishRepository:
    SELECT_COLUMNS = "id, document_id, subdomain, custom_domain, is_active, published_at"

    @classmethod
    def _row_to_target(cls, row: dict | None) -> PublishTarget | None:
        if not row:
            return None
        return PublishTarget(
            id=str(row["id"]),
            document_id=str(row["document_id"]),
            subdomain=row["subdomain"],
            custom_domain=row.get("custom_domain"),
            is_active=bool(row.get("is_active")),
            published_at=row.get("published_at"),
        )

    @classmethod
    async def load(cls, target_id: str) -> PublishTarget | None:
        row = await fetch_one(f"SELECT {cls.SELECT_COLUMNS} FROM publish_targets WHERE id = %s", (target_id,))
        return cls._row_to_target(row)

    @classmethod
    async def subdomain_taken(cls, subdomain: str, document_id: str) -> bool:
        """True when another document already owns the subdomain."""
        row = await fetch_one(
            "SELECT 1 AS taken FROM publish_targets WHERE subdomain = %s AND document_id <> %s",
            (subdomain, document_id),
        )
        return row is not None

    @classmethod
    async def upsert_inactive(
        cls, document_id: str, subdomain: str, custom_domain: str | None = None
    ) -> PublishTarget:
        """Create or rebind the document's target; activation is left to the worker."""
        query = f"""
            INSERT INTO publish_targets (id, document_id, subdomain, custom_domain, is_active)
            VALUES (%s, %s, %s, %s, false)
            ON CONFLICT (document_id) DO UPDATE
            SET subdomain = EXCLUDED.subdomain,
                custom_domain = EXCLUDED.custom_domain
            RETURNING {cls.SELECT_COLUMNS}
        """
        row = await fetch_one(query, (str(uuid4()), document_id, subdomain, custom_domain))
        return cls._row_to_target(row)

    @classmethod
    async def activate(cls, target_id: str) -> PublishTarget:
        """Mark active; published_at is kept from the first activation."""
        query = f"""
            UPDATE publish_targets
            SET is_active = true,
                published_at = COALESCE(published_at, NOW())
            WHERE id = %s
            RETURNING {cls.SELECT_COLUMNS}
        """
        row = await fetch_one(query, (target_id,))
        if row is None:
            raise NotFoundError(f"Publish target {target_id} not found", operation="activate_target")
        logger.info("Publish target activated", target_id=target_id)
        return cls._row_to_target(row)
