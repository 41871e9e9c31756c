"""Post-commit background work.

Job bodies are self-contained coroutines that open their own DB session,
independent of any request lifecycle:

  - ``recalculate_user_reputation_task`` runs inside Celery workers (wrapped
    by ``app.infrastructure.tasks.reputation_tasks``) on the NullPool engine.
  - ``dispatch_notifications_task`` runs in the API process on the detached
    task runner, because it publishes to the in-process realtime rooms.

:class:`BackgroundDispatcher` is the production ``IBackgroundDispatcher``:
services call it after their primary write has committed and it returns
immediately.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from app.domain.repositories import IRealtimePublisher
from app.domain.services import IBackgroundDispatcher
from app.infrastructure.database.connection import async_session_maker, worker_session_maker
from app.infrastructure.database.repository import (
    MaterialRepository,
    NotificationRepository,
    UserRepository,
)
from app.infrastructure.tasks.runner import DetachedTaskRunner
from app.services.notification_service import NotificationDispatcher
from app.services.reputation_service import ReputationService

logger = logging.getLogger(__name__)


async def recalculate_user_reputation_task(user_id: str, session_maker=worker_session_maker) -> None:
    """Recompute one author's reputation from the materials store."""
    logger.info("BG-TASK: recalculating reputation for user %s", user_id)
    async with session_maker() as session:
        service = ReputationService(MaterialRepository(session), UserRepository(session))
        await service.recalculate(UUID(user_id))


async def dispatch_notifications_task(
    publisher: IRealtimePublisher,
    kind: str,
    material_id: UUID,
    actor_id: Optional[UUID],
    extra: Optional[dict] = None,
) -> int:
    """Fan out one engagement event and return the number delivered."""
    async with async_session_maker() as session:
        dispatcher = NotificationDispatcher(
            material_repository=MaterialRepository(session),
            user_repository=UserRepository(session),
            notification_repository=NotificationRepository(session),
            publisher=publisher,
        )
        notifications = await dispatcher.notify(kind, material_id, actor_id, extra)
    return len(notifications)


class BackgroundDispatcher(IBackgroundDispatcher):
    """Schedules side effects without ever blocking or failing the caller."""

    def __init__(self, runner: DetachedTaskRunner, publisher: IRealtimePublisher):
        self.runner = runner
        self.publisher = publisher

    def notify(
        self,
        kind: str,
        material_id: UUID,
        actor_id: Optional[UUID],
        extra: Optional[dict] = None,
    ) -> None:
        self.runner.spawn(
            dispatch_notifications_task(self.publisher, kind, material_id, actor_id, extra),
            name=f"notify:{kind}:{material_id}",
        )

    def recalculate_reputation(self, user_id: UUID) -> None:
        from app.infrastructure.tasks.reputation_tasks import recalculate_user_reputation

        try:
            recalculate_user_reputation.delay(str(user_id))
            logger.debug("Reputation recomputation for user %s enqueued", user_id)
        except Exception as exc:
            logger.warning(
                "Could not enqueue reputation task for user %s (%s); running in-process",
                user_id, exc,
            )
            self.runner.spawn(
                recalculate_user_reputation_task(str(user_id), session_maker=async_session_maker),
                name=f"reputation:{user_id}",
            )

    def publish(self, room: str, event: str, payload: Any) -> None:
        self.runner.spawn(self._publish(room, event, payload), name=f"publish:{event}:{room}")

    async def _publish(self, room: str, event: str, payload: Any) -> None:
        try:
            delivered = await self.publisher.publish(room, event, payload)
            logger.debug("Published %s to %s (%d connection(s))", event, room, delivered)
        except Exception as exc:
            logger.warning("Realtime publish of %s to %s failed: %s", event, room, exc)
