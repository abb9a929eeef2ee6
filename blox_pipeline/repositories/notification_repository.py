"""
Notification sink: one row per terminal job outcome, read by client polling.
"""

from typing import Any
from uuid import uuid4

from blox_pipeline.db.helpers import as_json, execute_query, fetch_all, fetch_one, load_json
from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.errors import NotFoundError
from blox_pipeline.models.domain.pipeline_domain import Notification

logger = get_logger(__name__)


class NotificationRepository:
    SELECT_COLUMNS = "id, user_id, type, title, payload, read, source_job_id, created_at"

    @classmethod
    def _row_to_notification(cls, row: dict | None) -> Notification | None:
        if not row:
            return None
        return Notification(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            type=row["type"],
            title=row["title"],
            payload=load_json(row.get("payload"), {}),
            read=bool(row.get("read")),
            source_job_id=row.get("source_job_id"),
            created_at=row.get("created_at"),
        )

    @classmethod
    async def create(
        cls,
        *,
        user_id: str,
        type: str,
        title: str,
        payload: dict[str, Any],
        source_job_id: str | None = None,
    ) -> Notification:
        """
        Append a notification. With a source_job_id the insert is idempotent
        per (job, type); a redelivered job gets the existing row back.
        """
        query = f"""
            INSERT INTO notifications (id, user_id, type, title, payload, source_job_id)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (source_job_id, type) DO NOTHING
            RETURNING {cls.SELECT_COLUMNS}
        """
        row = await fetch_one(
            query, (str(uuid4()), user_id, type, title, as_json(payload), source_job_id)
        )
        if row is None:
            row = await fetch_one(
                f"SELECT {cls.SELECT_COLUMNS} FROM notifications WHERE source_job_id = %s AND type = %s",
                (source_job_id, type),
            )
        notification = cls._row_to_notification(row)
        logger.info("Notification recorded", user_id=user_id, type=type)
        return notification

    @classmethod
    async def list_for_user(
        cls, user_id: str, *, unread_only: bool = False, limit: int = 50
    ) -> list[Notification]:
        query = f"SELECT {cls.SELECT_COLUMNS} FROM notifications WHERE user_id = %s"
        if unread_only:
            query += " AND read = false"
        query += " ORDER BY created_at DESC LIMIT %s"
        rows = await fetch_all(query, (user_id, limit))
        return [cls._row_to_notification(row) for row in rows]

    @classmethod
    async def mark_read(cls, user_id: str, notification_id: str) -> None:
        """Idempotent: marking an already read notification is a no-op."""
        updated = await execute_query(
            "UPDATE notifications SET read = true WHERE id = %s AND user_id = %s",
            (notification_id, user_id),
        )
        if not updated:
            raise NotFoundError(
                f"Notification {notification_id} not found", operation="mark_notification_read"
            )
