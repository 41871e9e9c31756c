"""Author reputation and upload counters.

Both values are derived from the materials store and can drift when an async
recomputation is missed.  Every operation here is idempotent, so callers may
re-run it freely; a negative or implausible counter is replaced by a full
recount instead of being trusted.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from app.domain.repositories import IMaterialRepository, IUserRepository

logger = logging.getLogger(__name__)


def _round_half_up(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class ReputationService:
    """Recomputes derived per-author values from their materials."""

    def __init__(self, material_repository: IMaterialRepository, user_repository: IUserRepository):
        self.material_repository = material_repository
        self.user_repository = user_repository

    async def recalculate(self, user_id: UUID) -> float:
        """Mean ``rating.average`` over the author's active, approved, rated materials.

        Unrated materials are left out of the mean rather than counted as 0.
        An author with no rated material has reputation 0.  Rounded to two
        decimal places, halves rounding up.
        """
        materials = await self.material_repository.list_by_author(
            user_id, active_only=True, approved_only=True
        )
        averages = [m.rating.average for m in materials if m.rating.count > 0]
        reputation = _round_half_up(sum(averages) / len(averages)) if averages else 0.0
        await self.user_repository.set_reputation(user_id, reputation)
        logger.info(
            "Reputation for user %s recalculated: %.2f (%d rated materials)",
            user_id, reputation, len(averages),
        )
        return reputation

    async def recount_materials(self, user_id: UUID) -> int:
        """Replace the upload counter with the true number of active materials."""
        actual = await self.material_repository.count_by_author(user_id, active_only=True)
        await self.user_repository.set_materials_uploaded(user_id, actual)
        logger.info("Materials counter for user %s recounted: %d", user_id, actual)
        return actual

    async def register_upload(self, user_id: UUID) -> int:
        return await self.user_repository.adjust_materials_uploaded(user_id, 1)

    async def release_upload(self, user_id: UUID) -> int:
        """Decrement the upload counter after a material is destroyed."""
        remaining = await self.user_repository.adjust_materials_uploaded(user_id, -1)
        if remaining < 0:
            logger.warning(
                "Materials counter for user %s went negative (%d), recounting", user_id, remaining
            )
            remaining = await self.recount_materials(user_id)
        return remaining
