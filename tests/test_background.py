import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from app.infrastructure.tasks.runner import DetachedTaskRunner
from app.services.background_tasks import BackgroundDispatcher
from tests.fakes import FakePublisher


@pytest.mark.asyncio
async def test_spawned_task_runs_detached():
    runner = DetachedTaskRunner()
    done = asyncio.Event()

    async def job():
        done.set()

    runner.spawn(job(), name="job")
    await runner.drain()

    assert done.is_set()
    assert runner.pending == 0


@pytest.mark.asyncio
async def test_task_failure_is_logged_not_raised(caplog):
    runner = DetachedTaskRunner()

    async def boom():
        raise RuntimeError("kaput")

    with caplog.at_level(logging.ERROR, logger="app.infrastructure.tasks.runner"):
        runner.spawn(boom(), name="boom")
        await runner.drain()
        await asyncio.sleep(0)

    assert runner.pending == 0
    assert "Background task boom failed" in caplog.text


@pytest.mark.asyncio
async def test_drain_cancels_stragglers():
    runner = DetachedTaskRunner()
    task = runner.spawn(asyncio.sleep(60), name="slow")

    await runner.drain(timeout=0.01)
    with pytest.raises(asyncio.CancelledError):
        await task
    assert task.cancelled()


@pytest.mark.asyncio
async def test_publish_failure_does_not_escape():
    runner = DetachedTaskRunner()
    publisher = FakePublisher()
    publisher.fail = True
    dispatcher = BackgroundDispatcher(runner, publisher)

    dispatcher.publish("material:1", "comment-added", {"id": "c"})
    await runner.drain()

    assert runner.pending == 0


@pytest.mark.asyncio
async def test_publish_goes_through_publisher():
    runner = DetachedTaskRunner()
    publisher = FakePublisher()
    dispatcher = BackgroundDispatcher(runner, publisher)

    dispatcher.publish("material:1", "rating-updated", {"count": 2})
    await runner.drain()

    assert publisher.published == [("material:1", "rating-updated", {"count": 2})]


@pytest.mark.asyncio
async def test_reputation_is_enqueued_on_celery():
    runner = DetachedTaskRunner()
    dispatcher = BackgroundDispatcher(runner, FakePublisher())
    user_id = uuid4()

    with patch("app.infrastructure.tasks.reputation_tasks.recalculate_user_reputation") as task:
        dispatcher.recalculate_reputation(user_id)

    task.delay.assert_called_once_with(str(user_id))
    assert runner.pending == 0


@pytest.mark.asyncio
async def test_reputation_falls_back_in_process_when_broker_is_down():
    runner = DetachedTaskRunner()
    dispatcher = BackgroundDispatcher(runner, FakePublisher())
    user_id = uuid4()
    celery_task = MagicMock()
    celery_task.delay.side_effect = ConnectionError("broker unreachable")
    local_task = AsyncMock()

    with patch(
        "app.infrastructure.tasks.reputation_tasks.recalculate_user_reputation", celery_task
    ), patch("app.services.background_tasks.recalculate_user_reputation_task", local_task):
        dispatcher.recalculate_reputation(user_id)
        await runner.drain()

    local_task.assert_awaited_once()
    assert local_task.await_args.args == (str(user_id),)
