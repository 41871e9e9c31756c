"""Notification fan-out and the recipient-side inbox."""

import logging
from dataclasses import replace
from typing import Optional
from uuid import UUID, uuid4

from app.domain.entities import Material, Notification, NotificationPreferences, User
from app.domain.exceptions import NotFoundError, ValidationError
from app.domain.repositories import (
    IMaterialRepository,
    INotificationRepository,
    IRealtimePublisher,
    IUserRepository,
)
from app.services.events import NOTIFICATION_CREATED, notification_payload, user_room

logger = logging.getLogger(__name__)

COMMENT_PREVIEW_LENGTH = 100
REPORT_REASON_PREVIEW_LENGTH = 200
DEFAULT_INBOX_LIMIT = 50

PREFERENCE_FIELDS = ("rating", "comment_on_my_material", "comment_on_favorite", "report")


class NotificationDispatcher:
    """Computes recipients for an engagement event and delivers to each.

    Every notification is persisted before it is published to the recipient's
    user room.  A failure on one recipient is logged and skipped; it never
    aborts the rest of the batch and never propagates to the caller.
    """

    def __init__(
        self,
        material_repository: IMaterialRepository,
        user_repository: IUserRepository,
        notification_repository: INotificationRepository,
        publisher: IRealtimePublisher,
    ):
        self.material_repository = material_repository
        self.user_repository = user_repository
        self.notification_repository = notification_repository
        self.publisher = publisher

    async def notify(
        self,
        kind: str,
        material_id: UUID,
        actor_id: Optional[UUID],
        extra: Optional[dict] = None,
    ) -> list[Notification]:
        extra = extra or {}
        material = await self.material_repository.get_by_id(material_id)
        if material is None:
            logger.warning("Skipping %s notification: material %s no longer exists", kind, material_id)
            return []

        actor = await self.user_repository.get_by_id(actor_id) if actor_id else None
        actor_name = actor.name if actor else "Someone"

        if kind == "comment":
            drafts = await self._comment_drafts(material, actor_id, actor_name, extra)
        elif kind == "rating":
            drafts = await self._rating_drafts(material, actor_id, actor_name, extra)
        elif kind == "report":
            drafts = await self._report_drafts(material, actor_id, actor_name, extra)
        else:
            # "favorite" is a valid notification type without a fan-out rule.
            logger.debug("No notification rule for kind %r", kind)
            return []

        dispatched = []
        for draft in drafts:
            # No one is ever notified about their own action.
            if actor_id is not None and draft.recipient_id == actor_id:
                continue
            notification = await self._deliver(draft)
            if notification is not None:
                dispatched.append(notification)

        logger.info(
            "Dispatched %d %s notification(s) for material %s", len(dispatched), kind, material_id
        )
        return dispatched

    # -----------------------------------------------------------------------
    # Recipient rules
    # -----------------------------------------------------------------------

    async def _comment_drafts(
        self, material: Material, actor_id: Optional[UUID], actor_name: str, extra: dict
    ) -> list[Notification]:
        message = f'{actor_name} commented on "{material.title}"'
        metadata = {"comment_text": (extra.get("comment_text") or "")[:COMMENT_PREVIEW_LENGTH]}
        drafts = []

        if material.author_id != actor_id:
            author = await self.user_repository.get_by_id(material.author_id)
            if author is not None and author.notification_preferences.comment_on_my_material:
                drafts.append(self._draft(author.id, "comment", material, actor_id, message, metadata))

        for user in await self.user_repository.list_favoriting(material.id):
            if user.id in (actor_id, material.author_id):
                continue
            if user.notification_preferences.comment_on_favorite:
                drafts.append(self._draft(user.id, "comment", material, actor_id, message, metadata))
        return drafts

    async def _rating_drafts(
        self, material: Material, actor_id: Optional[UUID], actor_name: str, extra: dict
    ) -> list[Notification]:
        if not extra.get("first_time") or material.author_id == actor_id:
            return []
        author = await self.user_repository.get_by_id(material.author_id)
        if author is None or not author.notification_preferences.rating:
            return []
        stars = extra.get("stars")
        message = f'{actor_name} rated your material "{material.title}" with {stars} stars'
        return [self._draft(author.id, "rating", material, actor_id, message, {"rating": stars})]

    async def _report_drafts(
        self, material: Material, actor_id: Optional[UUID], actor_name: str, extra: dict
    ) -> list[Notification]:
        target = extra.get("target", "material")
        if target == "comment":
            message = f'{actor_name} reported a comment on "{material.title}"'
        else:
            message = f'{actor_name} reported the material "{material.title}"'
        metadata = {
            "report_type": target,
            "reason": (extra.get("reason") or "")[:REPORT_REASON_PREVIEW_LENGTH],
        }
        if extra.get("comment_id"):
            metadata["comment_id"] = extra["comment_id"]

        return [
            self._draft(admin.id, "report", material, actor_id, message, metadata)
            for admin in await self.user_repository.list_admins()
            if admin.notification_preferences.report
        ]

    @staticmethod
    def _draft(
        recipient_id: UUID,
        kind: str,
        material: Material,
        actor_id: Optional[UUID],
        message: str,
        metadata: dict,
    ) -> Notification:
        return Notification(
            id=uuid4(),
            recipient_id=recipient_id,
            type=kind,
            material_id=material.id,
            message=message,
            actor_id=actor_id,
            metadata=dict(metadata),
        )

    async def _deliver(self, draft: Notification) -> Optional[Notification]:
        try:
            notification = await self.notification_repository.create(draft)
        except Exception as exc:
            logger.error(
                "Failed to persist %s notification for user %s: %s",
                draft.type, draft.recipient_id, exc, exc_info=True,
            )
            return None

        try:
            await self.publisher.publish(
                user_room(notification.recipient_id),
                NOTIFICATION_CREATED,
                notification_payload(notification),
            )
        except Exception as exc:
            # Persisted already; the client picks it up on its next poll.
            logger.warning(
                "Realtime push of notification %s failed: %s", notification.id, exc
            )
        return notification


class NotificationService:
    """Inbox and preference operations for the notification recipient."""

    def __init__(
        self,
        notification_repository: INotificationRepository,
        user_repository: IUserRepository,
    ):
        self.notification_repository = notification_repository
        self.user_repository = user_repository

    async def list_notifications(
        self, user: User, limit: int = DEFAULT_INBOX_LIMIT, unread_only: bool = False
    ) -> tuple[list[Notification], int]:
        """Newest first, together with the total unread count."""
        notifications = await self.notification_repository.list_for_user(
            user.id, limit=limit, unread_only=unread_only
        )
        unread = await self.notification_repository.count_unread(user.id)
        return notifications, unread

    async def mark_read(self, user: User, notification_id: UUID) -> Notification:
        notification = await self.notification_repository.mark_read(notification_id, user.id)
        if notification is None:
            raise NotFoundError("Notification not found")
        return notification

    async def mark_all_read(self, user: User) -> int:
        updated = await self.notification_repository.mark_all_read(user.id)
        logger.info("Marked %d notification(s) read for user %s", updated, user.id)
        return updated

    async def delete_notification(self, user: User, notification_id: UUID) -> None:
        if not await self.notification_repository.delete(notification_id, user.id):
            raise NotFoundError("Notification not found")

    async def get_preferences(self, user: User) -> NotificationPreferences:
        return user.notification_preferences

    async def update_preferences(self, user: User, **flags: Optional[bool]) -> NotificationPreferences:
        """Apply a partial update; flags passed as ``None`` are left unchanged."""
        unknown = set(flags) - set(PREFERENCE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown notification preference(s): {', '.join(sorted(unknown))}")
        changes = {name: value for name, value in flags.items() if value is not None}
        preferences = replace(user.notification_preferences, **changes)
        updated = await self.user_repository.update_notification_preferences(user.id, preferences)
        return updated.notification_preferences
