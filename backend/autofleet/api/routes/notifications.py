"""
Notification inbox endpoints for the authenticated user.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from autofleet.core.security import get_current_user_id
from autofleet.db.session import get_db
from autofleet.schemas.notification import (
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from autofleet.services.notification_service import (
    list_notifications,
    mark_all_read,
    mark_read,
    unread_count,
)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=NotificationListResponse)
async def list_notifications_endpoint(
    unread_only: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    notifications, total = await list_notifications(db, user_id, unread_only, page, page_size)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count_endpoint(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return UnreadCountResponse(unread=await unread_count(db, user_id))


@router.put("/read-all", response_model=UnreadCountResponse)
async def mark_all_read_endpoint(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Mark every notification as read; returns the remaining unread count."""
    await mark_all_read(db, user_id)
    return UnreadCountResponse(unread=0)


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read_endpoint(
    notification_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await mark_read(db, user_id, notification_id)
