from fastapi import APIRouter, Depends, HTTPException, Query, status

from blox_pipeline.auth.verify import current_user_id
from blox_pipeline.jobs.errors import NotFoundError
from blox_pipeline.models.api.pipeline_response import (
    NotificationListResponse,
    NotificationResponse,
)
from blox_pipeline.repositories.notification_repository import NotificationRepository

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    user_id: str = Depends(current_user_id),
):
    notifications = await NotificationRepository.list_for_user(
        user_id, unread_only=unread_only, limit=limit
    )
    return NotificationListResponse(
        notifications=[
            NotificationResponse(
                id=n.id,
                type=n.type,
                title=n.title,
                payload=n.payload,
                read=n.read,
                created_at=n.created_at,
            )
            for n in notifications
        ],
        unread=sum(1 for n in notifications if not n.read),
    )


@router.post("/{notification_id}/read", status_code=204)
async def mark_read(notification_id: str, user_id: str = Depends(current_user_id)):
    try:
        await NotificationRepository.mark_read(user_id, notification_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
