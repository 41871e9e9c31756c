"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.admin_routes import router as admin_router
from app.api.engagement_routes import router as engagement_router
from app.api.error_handlers import register_exception_handlers
from app.api.favorite_routes import router as favorite_router
from app.api.notification_routes import router as notification_router
from app.api.realtime_routes import router as realtime_router
from app.api.routes import router as materials_router
from app.api.user_routes import router as user_router
from app.core.config import settings
from app.core.dependencies import create_view_tracker
from app.core.redis_client import create_redis_client
from app.infrastructure.database.connection import close_db, init_db
from app.infrastructure.realtime.rooms import RealtimeChannelRouter
from app.infrastructure.tasks.runner import DetachedTaskRunner
from app.services.background_tasks import BackgroundDispatcher

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build process-wide components once and tear them down on shutdown."""
    logger.info("Starting StudyShare application")
    await init_db()

    redis_client = create_redis_client() if settings.view_tracker_backend == "redis" else None
    runner = DetachedTaskRunner()
    app.state.realtime = RealtimeChannelRouter()
    app.state.view_tracker = create_view_tracker(redis_client)
    app.state.runner = runner
    app.state.dispatcher = BackgroundDispatcher(runner, app.state.realtime)
    logger.info("View dedup backend: %s", settings.view_tracker_backend)

    yield

    logger.info("Shutting down StudyShare application")
    await runner.drain()
    if redis_client is not None:
        await redis_client.aclose()
    await close_db()


app = FastAPI(
    title="StudyShare",
    description="Study material sharing with ratings, comments and moderation",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(materials_router)
app.include_router(engagement_router)
app.include_router(favorite_router)
app.include_router(notification_router)
app.include_router(user_router)
app.include_router(admin_router)
app.include_router(realtime_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
