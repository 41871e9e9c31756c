from uuid import uuid4

import pytest

from app.domain.exceptions import ConcurrentUpdateError, NotFoundError, ValidationError
from app.services.events import RATING_UPDATED, material_room
from app.services.rating_service import compute_rating_summary
from app.domain.entities import UserRating


def test_summary_of_no_ratings_is_zeroed():
    summary = compute_rating_summary([])
    assert summary.average == 0.0
    assert summary.count == 0
    assert summary.breakdown == [0, 0, 0, 0, 0]


def test_summary_breakdown_matches_entries():
    ratings = [UserRating(user_id=uuid4(), stars=s) for s in (5, 5, 3, 1)]
    summary = compute_rating_summary(ratings)
    assert summary.count == 4
    assert summary.breakdown == [1, 0, 1, 0, 2]
    assert summary.average == pytest.approx(3.5)
    assert sum(summary.breakdown) == summary.count


@pytest.mark.asyncio
async def test_rerating_replaces_previous_stars(rating_service, materials, material, rater, other):
    await rating_service.submit_rating(material.id, rater, 4)
    second = await rating_service.submit_rating(material.id, other, 2)
    assert second.average == pytest.approx(3.0)
    assert second.breakdown == [0, 1, 0, 1, 0]

    third = await rating_service.submit_rating(material.id, rater, 5)
    assert third.is_update is True
    assert third.count == 2
    assert third.average == pytest.approx(3.5)
    assert third.breakdown == [0, 1, 0, 0, 1]

    stored = materials.materials[material.id]
    assert len(stored.user_ratings) == 2
    assert sum(stored.rating.breakdown) == stored.rating.count


@pytest.mark.asyncio
@pytest.mark.parametrize("stars", [0, 6, -1, 4.5, "4", True, None])
async def test_invalid_stars_are_rejected(rating_service, materials, material, rater, stars):
    with pytest.raises(ValidationError):
        await rating_service.submit_rating(material.id, rater, stars)
    assert materials.save_calls == 0


@pytest.mark.asyncio
async def test_rating_unknown_material_is_not_found(rating_service, rater):
    with pytest.raises(NotFoundError):
        await rating_service.submit_rating(uuid4(), rater, 3)


@pytest.mark.asyncio
async def test_rating_hidden_material_is_not_found(rating_service, materials, material, rater):
    materials.materials[material.id].is_approved = False
    with pytest.raises(NotFoundError):
        await rating_service.submit_rating(material.id, rater, 3)


@pytest.mark.asyncio
async def test_only_first_rating_notifies_author(rating_service, dispatcher, material, author, rater):
    await rating_service.submit_rating(material.id, rater, 4)
    await rating_service.submit_rating(material.id, rater, 1)

    assert dispatcher.kinds() == ["rating"]
    kind, material_id, actor_id, extra = dispatcher.notifications[0]
    assert material_id == material.id
    assert actor_id == rater.id
    assert extra == {"stars": 4, "first_time": True}
    assert dispatcher.reputations == [author.id, author.id]


@pytest.mark.asyncio
async def test_rating_broadcasts_new_summary(rating_service, dispatcher, material, rater):
    await rating_service.submit_rating(material.id, rater, 3)
    room, event, payload = dispatcher.publishes[-1]
    assert room == material_room(material.id)
    assert event == RATING_UPDATED
    assert payload == {"average": 3.0, "count": 1, "breakdown": [0, 0, 1, 0, 0]}


@pytest.mark.asyncio
async def test_conflicting_save_is_retried(rating_service, materials, material, rater):
    materials.conflicts = 2
    result = await rating_service.submit_rating(material.id, rater, 5)
    assert result.count == 1
    assert materials.save_calls == 3


@pytest.mark.asyncio
async def test_conflicts_beyond_attempts_surface(rating_service, materials, material, rater, dispatcher):
    materials.conflicts = 3
    with pytest.raises(ConcurrentUpdateError):
        await rating_service.submit_rating(material.id, rater, 5)
    assert materials.materials[material.id].user_ratings == []
    assert dispatcher.notifications == []


@pytest.mark.asyncio
async def test_get_user_rating(rating_service, material, rater, other):
    await rating_service.submit_rating(material.id, rater, 2)
    assert await rating_service.get_user_rating(material.id, rater) == 2
    assert await rating_service.get_user_rating(material.id, other) is None
