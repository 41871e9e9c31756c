"""Domain-level application service interfaces (ports).

These abstract classes define the contracts that the API layer depends on.
Concrete implementations live in ``app/services/`` and are wired together
by the composition root in ``app/core/dependencies.py``.

``IBackgroundDispatcher`` is the one port every engagement service uses for
post-commit side effects (notification fan-out, reputation recomputation,
realtime publishes).  Its methods return immediately; the work runs detached
from the request and its failures never reach the caller.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from app.domain.entities import (
    Comment,
    Material,
    MaterialQuery,
    RatingResult,
    ReportEntry,
    User,
)


class IBackgroundDispatcher(ABC):

    @abstractmethod
    def notify(
        self,
        kind: str,
        material_id: UUID,
        actor_id: Optional[UUID],
        extra: Optional[dict] = None,
    ) -> None:
        """Schedule notification fan-out for *kind* on *material_id*."""
        pass

    @abstractmethod
    def recalculate_reputation(self, user_id: UUID) -> None:
        pass

    @abstractmethod
    def publish(self, room: str, event: str, payload: Any) -> None:
        pass


class IRatingService(ABC):

    @abstractmethod
    async def submit_rating(self, material_id: UUID, user: User, stars: int) -> RatingResult:
        pass

    @abstractmethod
    async def get_user_rating(self, material_id: UUID, user: User) -> Optional[int]:
        pass


class IModerationService(ABC):

    # --- Comments ---

    @abstractmethod
    async def add_comment(self, material_id: UUID, user: User, text: str) -> Comment:
        pass

    @abstractmethod
    async def toggle_comment_reaction(
        self, material_id: UUID, comment_id: UUID, user: User, kind: str
    ) -> Comment:
        pass

    # --- Reports ---

    @abstractmethod
    async def report_material(self, material_id: UUID, reporter: User, reason: str) -> None:
        pass

    @abstractmethod
    async def report_comment(
        self, material_id: UUID, comment_id: UUID, reporter: User, reason: str
    ) -> None:
        pass

    @abstractmethod
    async def resolve_report(self, report_id: UUID, action: str, actor: User) -> str:
        """Apply ``delete`` or ``ignore``; return what was affected."""
        pass

    @abstractmethod
    async def list_reports(
        self, actor: User, skip: int = 0, limit: int = 20
    ) -> tuple[list[ReportEntry], int]:
        pass

    @abstractmethod
    async def moderation_stats(self, actor: User) -> dict:
        pass


class IMaterialService(ABC):

    @abstractmethod
    async def create_material(
        self,
        author: User,
        file_content: bytes,
        filename: str,
        mime_type: str,
        title: str,
        discipline: str,
        year: int,
        material_type: str,
        description: Optional[str] = None,
        course: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> Material:
        pass

    @abstractmethod
    async def get_material(
        self, material_id: UUID, viewer_identity: str, viewer: Optional[User] = None
    ) -> tuple[Material, Optional[int]]:
        """Return the visible material and the viewer's own stars (if any).

        Registers the view with the dedup cache and increments ``views`` only
        when the cache says so.
        """
        pass

    @abstractmethod
    async def list_materials(
        self, filters: MaterialQuery, skip: int = 0, limit: int = 20
    ) -> tuple[list[Material], int]:
        pass

    @abstractmethod
    async def update_material(self, material_id: UUID, actor: User, **fields) -> Material:
        pass

    @abstractmethod
    async def delete_material(self, material_id: UUID, actor: User) -> None:
        pass

    @abstractmethod
    async def purge_material(self, material: Material) -> None:
        """Hard-delete a material and release everything hanging off it."""
        pass

    @abstractmethod
    async def download_material(
        self, material_id: UUID, user: User
    ) -> tuple[bytes, str, str]:
        """Return (file_bytes, mime_type, filename)."""
        pass
