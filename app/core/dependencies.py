"""Dependency injection container."""

from functools import lru_cache
from typing import Optional
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import decode_access_token
from app.domain.entities import User
from app.domain.repositories import (
    IMaterialRepository,
    INotificationRepository,
    IStorageService,
    IUserRepository,
    IViewTracker,
)
from app.domain.services import (
    IBackgroundDispatcher,
    IMaterialService,
    IModerationService,
    IRatingService,
)
from app.infrastructure.cache.view_tracker import InMemoryViewTracker, RedisViewTracker
from app.infrastructure.database.connection import get_db
from app.infrastructure.database.repository import (
    MaterialRepository,
    NotificationRepository,
    UserRepository,
)
from app.infrastructure.realtime.rooms import RealtimeChannelRouter
from app.infrastructure.storage.local import LocalStorageService
from app.infrastructure.storage.s3 import S3StorageService
from app.services.favorite_service import FavoriteService
from app.services.material_service import MaterialService
from app.services.moderation_service import ModerationService
from app.services.notification_service import NotificationService
from app.services.rating_service import RatingService
from app.services.user_service import UserService

# Tokens are issued by the account service; the URL is only advertised in OpenAPI.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


# ---------------------------------------------------------------------------
# Infrastructure providers
# ---------------------------------------------------------------------------
@lru_cache()
def get_storage_service() -> IStorageService:
    """Return the configured storage backend."""
    if settings.storage_backend == "local":
        return LocalStorageService(settings.storage_path)
    elif settings.storage_backend == "s3":
        return S3StorageService(
            bucket_name=settings.s3_bucket,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url or None,
            aws_access_key_id=settings.s3_access_key or None,
            aws_secret_access_key=settings.s3_secret_key or None,
        )
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")


def create_view_tracker(redis_client: Optional[aioredis.Redis] = None) -> IViewTracker:
    """Build the configured view dedup backend (called once at startup)."""
    if settings.view_tracker_backend == "redis":
        if redis_client is None:
            raise ValueError("Redis view tracker requires a Redis client")
        return RedisViewTracker(redis_client, window=settings.view_dedup_window_seconds)
    return InMemoryViewTracker(
        window=settings.view_dedup_window_seconds,
        retention=settings.view_retention_seconds,
    )


# Process-wide singletons live on app.state (see app.main lifespan).
def get_realtime_router(request: Request) -> RealtimeChannelRouter:
    return request.app.state.realtime


def get_view_tracker(request: Request) -> IViewTracker:
    return request.app.state.view_tracker


def get_background_dispatcher(request: Request) -> IBackgroundDispatcher:
    return request.app.state.dispatcher


# ---------------------------------------------------------------------------
# Repository providers
# ---------------------------------------------------------------------------
async def get_user_repository(session: AsyncSession = Depends(get_db)) -> IUserRepository:
    return UserRepository(session)


async def get_material_repository(session: AsyncSession = Depends(get_db)) -> IMaterialRepository:
    return MaterialRepository(session)


async def get_notification_repository(
    session: AsyncSession = Depends(get_db),
) -> INotificationRepository:
    return NotificationRepository(session)


# ---------------------------------------------------------------------------
# Service providers
# ---------------------------------------------------------------------------
async def get_material_service(
    material_repo: IMaterialRepository = Depends(get_material_repository),
    user_repo: IUserRepository = Depends(get_user_repository),
    storage: IStorageService = Depends(get_storage_service),
    view_tracker: IViewTracker = Depends(get_view_tracker),
    dispatcher: IBackgroundDispatcher = Depends(get_background_dispatcher),
) -> IMaterialService:
    return MaterialService(
        material_repository=material_repo,
        user_repository=user_repo,
        storage_service=storage,
        view_tracker=view_tracker,
        dispatcher=dispatcher,
        allowed_extensions=tuple(settings.allowed_upload_extensions),
        max_upload_size=settings.max_upload_size_bytes,
        material_types=tuple(settings.material_types),
        available_years=tuple(settings.available_years),
        save_attempts=settings.material_save_attempts,
    )


async def get_rating_service(
    material_repo: IMaterialRepository = Depends(get_material_repository),
    dispatcher: IBackgroundDispatcher = Depends(get_background_dispatcher),
) -> IRatingService:
    return RatingService(material_repo, dispatcher, save_attempts=settings.material_save_attempts)


async def get_moderation_service(
    material_repo: IMaterialRepository = Depends(get_material_repository),
    user_repo: IUserRepository = Depends(get_user_repository),
    material_service: IMaterialService = Depends(get_material_service),
    dispatcher: IBackgroundDispatcher = Depends(get_background_dispatcher),
) -> IModerationService:
    return ModerationService(
        material_repository=material_repo,
        user_repository=user_repo,
        material_service=material_service,
        dispatcher=dispatcher,
        save_attempts=settings.material_save_attempts,
    )


async def get_favorite_service(
    user_repo: IUserRepository = Depends(get_user_repository),
    material_repo: IMaterialRepository = Depends(get_material_repository),
) -> FavoriteService:
    return FavoriteService(user_repo, material_repo)


async def get_notification_service(
    notification_repo: INotificationRepository = Depends(get_notification_repository),
    user_repo: IUserRepository = Depends(get_user_repository),
) -> NotificationService:
    return NotificationService(notification_repo, user_repo)


async def get_user_service(
    user_repo: IUserRepository = Depends(get_user_repository),
    material_repo: IMaterialRepository = Depends(get_material_repository),
) -> UserService:
    return UserService(user_repo, material_repo)


# ---------------------------------------------------------------------------
# Auth dependency
# ---------------------------------------------------------------------------
async def resolve_principal(token: str, user_repo: IUserRepository) -> Optional[User]:
    """Map a bearer token to an active user, or None."""
    payload = decode_access_token(token)
    if payload is None:
        return None
    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        return None
    user = await user_repo.get_by_id(user_id)
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    user_repo: IUserRepository = Depends(get_user_repository),
) -> User:
    """Decode the JWT and return the authenticated user."""
    user = await resolve_principal(token, user_repo)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_optional_user(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    user_repo: IUserRepository = Depends(get_user_repository),
) -> Optional[User]:
    """Like :func:`get_current_user` but anonymous callers get ``None``."""
    if not token:
        return None
    user = await resolve_principal(token, user_repo)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_viewer_identity(
    request: Request, user: Optional[User] = Depends(get_optional_user)
) -> str:
    """Stable key for view dedup: the user id, else the client address."""
    if user is not None:
        return f"user:{user.id}"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    host = request.client.host if request.client else None
    return f"ip:{host or 'unknown'}"
