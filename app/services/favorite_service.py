"""Per-user favorites list."""

import logging
from uuid import UUID

from app.domain.entities import Material, User
from app.domain.exceptions import NotFoundError, ValidationError
from app.domain.repositories import IMaterialRepository, IUserRepository

logger = logging.getLogger(__name__)


class FavoriteService:

    def __init__(self, user_repository: IUserRepository, material_repository: IMaterialRepository):
        self.user_repository = user_repository
        self.material_repository = material_repository

    async def add_favorite(self, user: User, material_id: UUID) -> None:
        material = await self.material_repository.get_by_id(material_id)
        if material is None or not material.is_active:
            raise NotFoundError("Material not found")
        if not await self.user_repository.add_favorite(user.id, material_id):
            raise ValidationError("Material is already in your favorites")
        logger.info("User %s added material %s to favorites", user.id, material_id)

    async def remove_favorite(self, user: User, material_id: UUID) -> None:
        if not await self.user_repository.remove_favorite(user.id, material_id):
            raise ValidationError("Material is not in your favorites")
        logger.info("User %s removed material %s from favorites", user.id, material_id)

    async def list_favorites(self, user: User) -> list[Material]:
        """Favorited materials that are still active, in the order they were added."""
        if not user.favorites:
            return []
        materials = {m.id: m for m in await self.material_repository.get_many(list(user.favorites))}
        return [
            materials[material_id]
            for material_id in user.favorites
            if material_id in materials and materials[material_id].is_active
        ]

    async def is_favorite(self, user: User, material_id: UUID) -> bool:
        return material_id in user.favorites
