"""Public profiles and the self-healing counters behind them."""

import logging
from dataclasses import replace
from uuid import UUID

from app.domain.entities import Material, User
from app.domain.exceptions import NotFoundError
from app.domain.repositories import IMaterialRepository, IUserRepository
from app.services.reputation_service import ReputationService

logger = logging.getLogger(__name__)


class UserService:

    def __init__(self, user_repository: IUserRepository, material_repository: IMaterialRepository):
        self.user_repository = user_repository
        self.material_repository = material_repository
        self.reputation = ReputationService(material_repository, user_repository)

    async def get_profile(self, user_id: UUID) -> tuple[User, list[Material]]:
        """Public profile plus the user's published materials.

        ``materials_uploaded`` is taken from the live count of active, approved
        materials rather than the stored counter.
        """
        user = await self.user_repository.get_by_id(user_id)
        if user is None or not user.is_active:
            raise NotFoundError("User not found")
        materials = await self.material_repository.list_by_author(
            user_id, active_only=True, approved_only=True
        )
        return replace(user, materials_uploaded=len(materials)), materials

    async def get_my_profile(self, user: User) -> User:
        """The caller's own profile with reputation recomputed on the spot."""
        reputation = await self.reputation.recalculate(user.id)
        return replace(user, reputation=reputation)

    async def recalculate_my_reputation(self, user: User) -> float:
        return await self.reputation.recalculate(user.id)

    async def recount_my_materials(self, user: User) -> int:
        return await self.reputation.recount_materials(user.id)
