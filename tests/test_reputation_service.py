import pytest

from app.domain.entities import RatingSummary
from app.services.reputation_service import ReputationService
from tests.fakes import make_material
from tests.fakes import FakeMaterialRepository, FakeUserRepository


def _rated(author, average, count=1, **kwargs):
    return make_material(author, rating=RatingSummary(average=average, count=count), **kwargs)


@pytest.fixture
def reputation(author):
    materials = FakeMaterialRepository()
    users = FakeUserRepository([author])
    return ReputationService(materials, users), materials, users


@pytest.mark.asyncio
async def test_unrated_materials_do_not_drag_the_mean(reputation, author):
    service, materials, users = reputation
    for m in (_rated(author, 4.0), _rated(author, 5.0), _rated(author, 0.0, count=0)):
        await materials.create(m)

    assert await service.recalculate(author.id) == 4.5
    assert users.users[author.id].reputation == 4.5


@pytest.mark.asyncio
async def test_hidden_materials_are_ignored(reputation, author):
    service, materials, _ = reputation
    await materials.create(_rated(author, 2.0))
    await materials.create(_rated(author, 5.0, is_approved=False))
    await materials.create(_rated(author, 5.0, is_active=False))

    assert await service.recalculate(author.id) == 2.0


@pytest.mark.asyncio
async def test_reputation_is_rounded_to_two_decimals(reputation, author):
    service, materials, _ = reputation
    for average in (4.0, 4.0, 3.0):
        await materials.create(_rated(author, average))

    assert await service.recalculate(author.id) == 3.67


@pytest.mark.asyncio
async def test_reputation_halves_round_up(reputation, author):
    service, materials, users = reputation
    await materials.create(_rated(author, 3.0, count=2))
    await materials.create(_rated(author, 3.25, count=4))

    assert await service.recalculate(author.id) == 3.13
    assert users.users[author.id].reputation == 3.13


@pytest.mark.asyncio
async def test_no_rated_material_means_zero(reputation, author):
    service, materials, _ = reputation
    await materials.create(_rated(author, 0.0, count=0))
    assert await service.recalculate(author.id) == 0.0


@pytest.mark.asyncio
async def test_negative_counter_triggers_recount(reputation, author):
    service, materials, users = reputation
    users.users[author.id].materials_uploaded = 0
    await materials.create(make_material(author))
    await materials.create(make_material(author, is_active=False))

    assert await service.release_upload(author.id) == 1
    assert users.users[author.id].materials_uploaded == 1


@pytest.mark.asyncio
async def test_register_and_release_upload(reputation, author):
    service, _, users = reputation
    assert await service.register_upload(author.id) == 2
    assert await service.release_upload(author.id) == 1
    assert users.users[author.id].materials_uploaded == 1
