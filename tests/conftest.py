from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from app.domain.entities import ROLE_ADMIN
from app.services.material_service import MaterialService
from app.services.moderation_service import ModerationService
from app.services.rating_service import RatingService
from tests.fakes import (
    AlwaysCountViews,
    FakeMaterialRepository,
    FakeNotificationRepository,
    FakePublisher,
    FakeStorage,
    FakeUserRepository,
    RecordingDispatcher,
    make_material,
    make_user,
)


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------

@pytest.fixture
def author():
    return make_user("Alice", materials_uploaded=1)


@pytest.fixture
def rater():
    return make_user("Bob")


@pytest.fixture
def other():
    return make_user("Carol")


@pytest.fixture
def admin():
    return make_user("Dana", role=ROLE_ADMIN)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

@pytest.fixture
def material(author):
    return make_material(author, created_at=datetime.utcnow() - timedelta(days=1))


@pytest.fixture
def storage(material):
    store = FakeStorage()
    store.files[material.file_path] = b"%PDF-1.7 fake"
    return store


@pytest.fixture
def users(author, rater, other, admin):
    return FakeUserRepository([author, rater, other, admin])


@pytest.fixture
def materials(material):
    return FakeMaterialRepository([material])


@pytest.fixture
def notifications():
    return FakeNotificationRepository()


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@pytest.fixture
def material_service(materials, users, storage, dispatcher):
    return MaterialService(
        material_repository=materials,
        user_repository=users,
        storage_service=storage,
        view_tracker=AlwaysCountViews(),
        dispatcher=dispatcher,
    )


@pytest.fixture
def rating_service(materials, dispatcher):
    return RatingService(materials, dispatcher)


@pytest.fixture
def moderation_service(materials, users, material_service, dispatcher):
    return ModerationService(
        material_repository=materials,
        user_repository=users,
        material_service=material_service,
        dispatcher=dispatcher,
    )
