"""Realtime event names, room keys and JSON payload builders."""

from typing import Optional
from uuid import UUID

from app.domain.entities import Comment, Notification, RatingSummary, User

COMMENT_ADDED = "comment-added"
RATING_UPDATED = "rating-updated"
NOTIFICATION_CREATED = "notification-created"


def material_room(material_id: UUID) -> str:
    return f"material:{material_id}"


def user_room(user_id: UUID) -> str:
    return f"user:{user_id}"


def comment_payload(comment: Comment, author: Optional[User] = None) -> dict:
    return {
        "id": str(comment.id),
        "author_id": str(comment.author_id),
        "author_name": author.name if author else None,
        "text": comment.text,
        "likes": [str(u) for u in comment.likes],
        "dislikes": [str(u) for u in comment.dislikes],
        "created_at": comment.created_at.isoformat(),
    }


def rating_payload(rating: RatingSummary) -> dict:
    return {
        "average": rating.average,
        "count": rating.count,
        "breakdown": list(rating.breakdown),
    }


def notification_payload(notification: Notification) -> dict:
    return {
        "id": str(notification.id),
        "type": notification.type,
        "material_id": str(notification.material_id),
        "actor_id": str(notification.actor_id) if notification.actor_id else None,
        "message": notification.message,
        "is_read": notification.is_read,
        "metadata": notification.metadata,
        "created_at": notification.created_at.isoformat(),
    }
