"""Repository interfaces (ports) for dependency inversion."""

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from app.domain.entities import (
    Material,
    MaterialQuery,
    Notification,
    NotificationPreferences,
    ReportLocation,
    User,
)


class IUserRepository(ABC):

    @abstractmethod
    async def create(self, user: User) -> User:
        pass

    @abstractmethod
    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        pass

    @abstractmethod
    async def get_many(self, user_ids: list[UUID]) -> dict[UUID, User]:
        """Resolve several users at once, keyed by id (missing ids omitted)."""
        pass

    @abstractmethod
    async def list_admins(self) -> list[User]:
        pass

    @abstractmethod
    async def list_favoriting(self, material_id: UUID) -> list[User]:
        """Users that have *material_id* in their favorites."""
        pass

    @abstractmethod
    async def count(self, role: Optional[str] = None) -> int:
        pass

    @abstractmethod
    async def set_reputation(self, user_id: UUID, reputation: float) -> None:
        pass

    @abstractmethod
    async def adjust_materials_uploaded(self, user_id: UUID, delta: int) -> int:
        """Atomically add *delta* to the upload counter and return the new value."""
        pass

    @abstractmethod
    async def set_materials_uploaded(self, user_id: UUID, count: int) -> None:
        pass

    @abstractmethod
    async def increment_materials_downloaded(self, user_id: UUID) -> None:
        pass

    @abstractmethod
    async def add_favorite(self, user_id: UUID, material_id: UUID) -> bool:
        """Return False when the material was already a favorite."""
        pass

    @abstractmethod
    async def remove_favorite(self, user_id: UUID, material_id: UUID) -> bool:
        """Return False when the material was not a favorite."""
        pass

    @abstractmethod
    async def remove_favorite_everywhere(self, material_id: UUID) -> int:
        pass

    @abstractmethod
    async def update_notification_preferences(
        self, user_id: UUID, preferences: NotificationPreferences
    ) -> User:
        pass


class IMaterialRepository(ABC):
    """Aggregate store for materials.

    ``save`` replaces the whole aggregate (core fields, derived rating and the
    embedded ratings/comments/reports) atomically and only if the stored
    version still equals ``material.version``; otherwise it raises
    :class:`~app.domain.exceptions.ConcurrentUpdateError`.  ``views`` and
    ``downloads`` are never written by ``save``.
    """

    @abstractmethod
    async def create(self, material: Material) -> Material:
        pass

    @abstractmethod
    async def get_by_id(self, material_id: UUID) -> Optional[Material]:
        pass

    @abstractmethod
    async def save(self, material: Material) -> Material:
        pass

    @abstractmethod
    async def delete(self, material_id: UUID) -> bool:
        pass

    @abstractmethod
    async def query(
        self, filters: MaterialQuery, skip: int = 0, limit: int = 20
    ) -> list[Material]:
        pass

    @abstractmethod
    async def count(self, filters: MaterialQuery) -> int:
        pass

    @abstractmethod
    async def list_by_author(
        self, author_id: UUID, *, active_only: bool = True, approved_only: bool = False
    ) -> list[Material]:
        pass

    @abstractmethod
    async def count_by_author(
        self, author_id: UUID, *, active_only: bool = True, approved_only: bool = False
    ) -> int:
        pass

    @abstractmethod
    async def get_many(self, material_ids: list[UUID]) -> list[Material]:
        pass

    @abstractmethod
    async def find_report(self, report_id: UUID) -> Optional[ReportLocation]:
        """Single indexed lookup of a report id across material and comment scopes."""
        pass

    @abstractmethod
    async def list_with_reports(self) -> list[Material]:
        """Materials carrying at least one material-level or comment-level report."""
        pass

    @abstractmethod
    async def increment_views(self, material_id: UUID) -> int:
        pass

    @abstractmethod
    async def increment_downloads(self, material_id: UUID) -> int:
        pass


class INotificationRepository(ABC):

    @abstractmethod
    async def create(self, notification: Notification) -> Notification:
        pass

    @abstractmethod
    async def list_for_user(
        self, user_id: UUID, limit: int = 50, unread_only: bool = False
    ) -> list[Notification]:
        pass

    @abstractmethod
    async def count_unread(self, user_id: UUID) -> int:
        pass

    @abstractmethod
    async def mark_read(self, notification_id: UUID, user_id: UUID) -> Optional[Notification]:
        pass

    @abstractmethod
    async def mark_all_read(self, user_id: UUID) -> int:
        pass

    @abstractmethod
    async def delete(self, notification_id: UUID, user_id: UUID) -> bool:
        pass


class IStorageService(ABC):

    @abstractmethod
    async def save_file(self, file_content: bytes, filename: str) -> str:
        pass

    @abstractmethod
    async def get_file(self, file_path: str) -> bytes:
        pass

    @abstractmethod
    async def delete_file(self, file_path: str) -> bool:
        pass


class IRealtimePublisher(ABC):
    """Broadcast side of the realtime room router."""

    @abstractmethod
    async def publish(self, room: str, event: str, payload: Any) -> int:
        """Send *event* to every current member of *room*; return deliveries."""
        pass


class IViewTracker(ABC):
    """Time-windowed dedup of view-count increments."""

    @abstractmethod
    async def register_view(self, material_id: UUID, viewer_identity: str) -> bool:
        """Return True iff this view should increment the material's counter."""
        pass
