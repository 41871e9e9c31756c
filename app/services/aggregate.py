"""Optimistic read-modify-write on a single Material aggregate.

Every engagement mutation (rating, comment, reaction, report, resolution)
goes through :func:`mutate_material`: re-read the whole aggregate, apply the
change in memory, then save it with a version check.  On a version conflict
the mutation is re-applied to a fresh copy, so the callback must only touch
the material it is given.
"""

import logging
from typing import Callable, TypeVar
from uuid import UUID

from app.domain.entities import Material
from app.domain.exceptions import ConcurrentUpdateError, NotFoundError
from app.domain.repositories import IMaterialRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3


async def mutate_material(
    repository: IMaterialRepository,
    material_id: UUID,
    mutate: Callable[[Material], T],
    *,
    require_visible: bool = True,
    attempts: int = DEFAULT_ATTEMPTS,
) -> tuple[Material, T]:
    """Apply *mutate* to the current material and persist it atomically.

    Returns ``(saved_material, mutate_result)``.  Raises ``NotFoundError`` when
    the material is gone (or not visible and *require_visible* is set) and
    ``ConcurrentUpdateError`` when every attempt lost the race.
    """
    for attempt in range(1, attempts + 1):
        material = await repository.get_by_id(material_id)
        if material is None or (require_visible and not material.is_visible):
            raise NotFoundError("Material not found")

        result = mutate(material)

        try:
            saved = await repository.save(material)
        except ConcurrentUpdateError:
            logger.info(
                "Material %s changed concurrently (attempt %d/%d), retrying",
                material_id, attempt, attempts,
            )
            continue
        return saved, result

    logger.warning("Giving up on material %s after %d conflicting saves", material_id, attempts)
    raise ConcurrentUpdateError("Material is being modified concurrently, please retry")
