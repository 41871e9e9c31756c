from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from app.domain.entities import Notification
from app.domain.exceptions import NotFoundError, ValidationError
from app.services.notification_service import NotificationService


def _notification(recipient, material, minutes_ago, is_read=False):
    return Notification(
        id=uuid4(),
        recipient_id=recipient.id,
        type="comment",
        material_id=material.id,
        message="someone commented",
        is_read=is_read,
        created_at=datetime.utcnow() - timedelta(minutes=minutes_ago),
    )


@pytest.fixture
def inbox(notifications, users, author, rater, material):
    notifications.notifications = [
        _notification(author, material, 30, is_read=True),
        _notification(author, material, 10),
        _notification(author, material, 20),
        _notification(rater, material, 5),
    ]
    return NotificationService(notifications, users)


@pytest.mark.asyncio
async def test_list_is_newest_first_with_unread_count(inbox, author):
    items, unread = await inbox.list_notifications(author)
    assert unread == 2
    assert [n.created_at for n in items] == sorted((n.created_at for n in items), reverse=True)
    assert all(n.recipient_id == author.id for n in items)

    unread_items, _ = await inbox.list_notifications(author, unread_only=True)
    assert len(unread_items) == 2


@pytest.mark.asyncio
async def test_mark_read_only_own_notifications(inbox, notifications, author, rater):
    foreign = next(n for n in notifications.notifications if n.recipient_id == rater.id)
    with pytest.raises(NotFoundError):
        await inbox.mark_read(author, foreign.id)

    own = next(n for n in notifications.notifications if n.recipient_id == author.id and not n.is_read)
    result = await inbox.mark_read(author, own.id)
    assert result.is_read is True


@pytest.mark.asyncio
async def test_mark_all_read(inbox, author):
    assert await inbox.mark_all_read(author) == 2
    assert await inbox.mark_all_read(author) == 0


@pytest.mark.asyncio
async def test_delete_notification(inbox, notifications, author):
    target = notifications.notifications[0]
    await inbox.delete_notification(author, target.id)
    with pytest.raises(NotFoundError):
        await inbox.delete_notification(author, target.id)


@pytest.mark.asyncio
async def test_update_preferences_is_partial(inbox, users, author):
    prefs = await inbox.update_preferences(author, rating=False, report=None)

    assert prefs.rating is False
    assert prefs.report is True
    assert prefs.comment_on_favorite is True
    assert users.users[author.id].notification_preferences.rating is False


@pytest.mark.asyncio
async def test_unknown_preference_rejected(inbox, author):
    with pytest.raises(ValidationError):
        await inbox.update_preferences(author, newsletter=True)
