from uuid import uuid4

import pytest

from app.domain.entities import NotificationPreferences
from app.services.events import NOTIFICATION_CREATED, user_room
from app.services.notification_service import NotificationDispatcher
from tests.fakes import make_user


@pytest.fixture
def fanout(materials, users, notifications, publisher):
    return NotificationDispatcher(materials, users, notifications, publisher)


def _recipients(result):
    return sorted(str(n.recipient_id) for n in result)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_comment_notifies_author_and_favoriters(fanout, users, material, author, rater, other):
    users.users[other.id].favorites.append(material.id)
    users.users[author.id].favorites.append(material.id)

    result = await fanout.notify("comment", material.id, rater.id, {"comment_text": "z" * 300})

    assert _recipients(result) == sorted([str(author.id), str(other.id)])
    for notification in result:
        assert notification.type == "comment"
        assert notification.message == f'Bob commented on "{material.title}"'
        assert notification.metadata == {"comment_text": "z" * 100}


@pytest.mark.asyncio
async def test_author_commenting_on_own_material_notifies_only_favoriters(
    fanout, users, material, author, other
):
    users.users[other.id].favorites.append(material.id)
    result = await fanout.notify("comment", material.id, author.id, {"comment_text": "update"})
    assert _recipients(result) == [str(other.id)]


@pytest.mark.asyncio
async def test_comment_preferences_are_respected(fanout, users, material, author, rater, other):
    users.users[author.id].notification_preferences = NotificationPreferences(comment_on_my_material=False)
    users.users[other.id].notification_preferences = NotificationPreferences(comment_on_favorite=False)
    users.users[other.id].favorites.append(material.id)

    assert await fanout.notify("comment", material.id, rater.id, {"comment_text": "hi"}) == []


@pytest.mark.asyncio
async def test_favoriting_commenter_is_not_notified(fanout, users, material, author, rater):
    users.users[rater.id].favorites.append(material.id)
    result = await fanout.notify("comment", material.id, rater.id, {"comment_text": "hi"})
    assert _recipients(result) == [str(author.id)]


# ---------------------------------------------------------------------------
# Ratings
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_first_rating_notifies_author(fanout, material, author, rater):
    result = await fanout.notify("rating", material.id, rater.id, {"stars": 4, "first_time": True})

    assert len(result) == 1
    notification = result[0]
    assert notification.recipient_id == author.id
    assert notification.metadata == {"rating": 4}
    assert notification.message == f'Bob rated your material "{material.title}" with 4 stars'


@pytest.mark.asyncio
async def test_rating_without_first_time_or_preference(fanout, users, material, author, rater):
    assert await fanout.notify("rating", material.id, rater.id, {"stars": 4}) == []

    users.users[author.id].notification_preferences = NotificationPreferences(rating=False)
    assert await fanout.notify("rating", material.id, rater.id, {"stars": 4, "first_time": True}) == []


@pytest.mark.asyncio
async def test_self_rating_is_silent(fanout, material, author):
    assert await fanout.notify("rating", material.id, author.id, {"stars": 5, "first_time": True}) == []


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_report_notifies_opted_in_admins(fanout, users, material, rater, admin):
    muted = make_user("Eve", role="admin", notification_preferences=NotificationPreferences(report=False))
    await users.create(muted)

    result = await fanout.notify(
        "report", material.id, rater.id, {"target": "material", "reason": "r" * 300}
    )

    assert _recipients(result) == [str(admin.id)]
    assert result[0].metadata == {"report_type": "material", "reason": "r" * 200}


@pytest.mark.asyncio
async def test_comment_report_carries_comment_id(fanout, material, rater, admin):
    result = await fanout.notify(
        "report",
        material.id,
        rater.id,
        {"target": "comment", "comment_id": "c-1", "reason": "spam in comments"},
    )
    assert result[0].metadata["comment_id"] == "c-1"
    assert "reported a comment" in result[0].message


@pytest.mark.asyncio
async def test_reporting_admin_is_not_notified(fanout, material, admin):
    result = await fanout.notify("report", material.id, admin.id, {"reason": "wrong category"})
    assert result == []


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_favorite_kind_has_no_recipients(fanout, notifications, material, rater):
    assert await fanout.notify("favorite", material.id, rater.id) == []
    assert notifications.notifications == []


@pytest.mark.asyncio
async def test_missing_material_is_skipped(fanout, rater):
    assert await fanout.notify("comment", uuid4(), rater.id, {"comment_text": "hi"}) == []


@pytest.mark.asyncio
async def test_persisted_then_published(fanout, notifications, publisher, material, author, rater):
    await fanout.notify("rating", material.id, rater.id, {"stars": 3, "first_time": True})

    assert len(notifications.notifications) == 1
    room, event, payload = publisher.published[0]
    assert room == user_room(author.id)
    assert event == NOTIFICATION_CREATED
    assert payload["id"] == str(notifications.notifications[0].id)
    assert payload["is_read"] is False


@pytest.mark.asyncio
async def test_persistence_failure_skips_only_that_recipient(
    fanout, users, notifications, publisher, material, author, rater, other
):
    users.users[other.id].favorites.append(material.id)
    notifications.fail_for.add(author.id)

    result = await fanout.notify("comment", material.id, rater.id, {"comment_text": "hi"})

    assert _recipients(result) == [str(other.id)]
    assert [p[0] for p in publisher.published] == [user_room(other.id)]


@pytest.mark.asyncio
async def test_publish_failure_keeps_persisted_notification(fanout, notifications, publisher, material, rater):
    publisher.fail = True
    result = await fanout.notify("rating", material.id, rater.id, {"stars": 2, "first_time": True})

    assert len(result) == 1
    assert len(notifications.notifications) == 1
