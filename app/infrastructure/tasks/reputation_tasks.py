"""Celery task wrapper for author reputation recomputation.

The task is a thin synchronous wrapper around the coroutine defined in
``app.services.background_tasks``; each worker process runs it with
``asyncio.run()`` on its own event loop.

Retry policy: ``max_retries=3``, 60 s countdown between attempts.  The
recomputation is idempotent, so a retried or duplicated run is harmless.
"""

import asyncio
import logging

from app.infrastructure.tasks.celery_app import celery_app
from app.services.background_tasks import recalculate_user_reputation_task

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="reputation.recalculate_user", max_retries=3)
def recalculate_user_reputation(self, user_id: str) -> None:
    """Celery task: recompute one author's reputation from their materials."""
    try:
        asyncio.run(recalculate_user_reputation_task(user_id))
    except Exception as exc:
        logger.warning(
            "recalculate_user_reputation failed for %s (attempt %d/%d): %s",
            user_id,
            self.request.retries + 1,
            self.max_retries + 1,
            exc,
        )
        raise self.retry(exc=exc, countdown=60)
