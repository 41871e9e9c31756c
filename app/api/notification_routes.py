"""Notification inbox and preference routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.api.schemas import (
    MessageResponse,
    NotificationListResponse,
    NotificationPreferencesSchema,
    NotificationPreferencesUpdate,
    NotificationResponse,
)
from app.core.dependencies import get_current_user, get_notification_service
from app.domain.entities import User
from app.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/", response_model=NotificationListResponse)
async def list_notifications(
    notification_service: Annotated[NotificationService, Depends(get_notification_service)],
    current_user: Annotated[User, Depends(get_current_user)],
    limit: int = 50,
    unread_only: bool = False,
) -> NotificationListResponse:
    notifications, unread = await notification_service.list_notifications(
        current_user, limit=min(max(limit, 1), 100), unread_only=unread_only
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=unread,
    )


@router.put("/read-all", response_model=MessageResponse)
async def mark_all_read(
    notification_service: Annotated[NotificationService, Depends(get_notification_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> MessageResponse:
    updated = await notification_service.mark_all_read(current_user)
    return MessageResponse(message=f"{updated} notification(s) marked as read")


@router.get("/preferences", response_model=NotificationPreferencesSchema)
async def get_preferences(
    notification_service: Annotated[NotificationService, Depends(get_notification_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> NotificationPreferencesSchema:
    preferences = await notification_service.get_preferences(current_user)
    return NotificationPreferencesSchema.model_validate(preferences)


@router.put("/preferences", response_model=NotificationPreferencesSchema)
async def update_preferences(
    data: NotificationPreferencesUpdate,
    notification_service: Annotated[NotificationService, Depends(get_notification_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> NotificationPreferencesSchema:
    preferences = await notification_service.update_preferences(
        current_user, **data.model_dump(exclude_unset=True)
    )
    return NotificationPreferencesSchema.model_validate(preferences)


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: UUID,
    notification_service: Annotated[NotificationService, Depends(get_notification_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> NotificationResponse:
    notification = await notification_service.mark_read(current_user, notification_id)
    return NotificationResponse.model_validate(notification)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: UUID,
    notification_service: Annotated[NotificationService, Depends(get_notification_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> None:
    await notification_service.delete_notification(current_user, notification_id)
