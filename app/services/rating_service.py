"""Rating aggregation: per-user stars → live distribution on the material."""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from app.domain.entities import STAR_VALUES, Material, RatingResult, RatingSummary, User, UserRating
from app.domain.exceptions import NotFoundError, ValidationError
from app.domain.repositories import IMaterialRepository
from app.domain.services import IBackgroundDispatcher, IRatingService
from app.services.aggregate import DEFAULT_ATTEMPTS, mutate_material
from app.services.events import RATING_UPDATED, material_room, rating_payload

logger = logging.getLogger(__name__)


def compute_rating_summary(user_ratings: list[UserRating]) -> RatingSummary:
    """Rebuild the distribution from scratch so it can never drift."""
    breakdown = [0] * len(STAR_VALUES)
    for entry in user_ratings:
        breakdown[entry.stars - 1] += 1
    count = len(user_ratings)
    total = sum(entry.stars for entry in user_ratings)
    average = total / count if count > 0 else 0.0
    return RatingSummary(average=average, count=count, breakdown=breakdown)


class RatingService(IRatingService):
    """Records one rating per (user, material) and keeps the summary derived."""

    def __init__(
        self,
        material_repository: IMaterialRepository,
        dispatcher: IBackgroundDispatcher,
        save_attempts: int = DEFAULT_ATTEMPTS,
    ):
        self.material_repository = material_repository
        self.dispatcher = dispatcher
        self.save_attempts = save_attempts

    async def submit_rating(self, material_id: UUID, user: User, stars: int) -> RatingResult:
        """Create or replace *user*'s rating of the material.

        Re-rating overwrites the existing entry in place (stars and timestamp);
        the summary is then recomputed from the full set of entries.  After the
        save commits, the author's reputation recomputation and the realtime
        ``rating-updated`` broadcast are scheduled, plus an author notification
        on a first-time rating only.
        """
        if isinstance(stars, bool) or not isinstance(stars, int) or stars not in STAR_VALUES:
            raise ValidationError("Rating must be an integer between 1 and 5")

        def apply(material: Material) -> bool:
            now = datetime.utcnow()
            existing = next((r for r in material.user_ratings if r.user_id == user.id), None)
            if existing is not None:
                existing.stars = stars
                existing.rated_at = now
            else:
                material.user_ratings.append(UserRating(user_id=user.id, stars=stars, rated_at=now))
            material.rating = compute_rating_summary(material.user_ratings)
            material.updated_at = now
            return existing is not None

        material, is_update = await mutate_material(
            self.material_repository, material_id, apply, attempts=self.save_attempts
        )
        logger.info(
            "Rating %s by user %s on material %s (%d stars, avg=%.2f, n=%d)",
            "updated" if is_update else "recorded",
            user.id, material_id, stars, material.rating.average, material.rating.count,
        )

        self.dispatcher.recalculate_reputation(material.author_id)
        self.dispatcher.publish(
            material_room(material.id), RATING_UPDATED, rating_payload(material.rating)
        )
        if not is_update:
            self.dispatcher.notify(
                "rating", material.id, user.id, {"stars": stars, "first_time": True}
            )

        return RatingResult(
            average=material.rating.average,
            count=material.rating.count,
            breakdown=list(material.rating.breakdown),
            user_rating=stars,
            is_update=is_update,
        )

    async def get_user_rating(self, material_id: UUID, user: User) -> Optional[int]:
        material = await self.material_repository.get_by_id(material_id)
        if material is None:
            raise NotFoundError("Material not found")
        for entry in material.user_ratings:
            if entry.user_id == user.id:
                return entry.stars
        return None
