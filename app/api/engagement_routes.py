"""Ratings, comments, reactions and reports on a material."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.api.schemas import (
    CommentCreateRequest,
    CommentResponse,
    MessageResponse,
    RatingRequest,
    RatingResponse,
    ReportRequest,
    UserRatingResponse,
)
from app.core.dependencies import get_current_user, get_moderation_service, get_rating_service
from app.domain.entities import User
from app.domain.services import IModerationService, IRatingService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/materials", tags=["engagement"])


# ---------------------------------------------------------------------------
# Ratings
# ---------------------------------------------------------------------------
@router.post("/{material_id}/rating", response_model=RatingResponse)
async def rate_material(
    material_id: UUID,
    data: RatingRequest,
    rating_service: Annotated[IRatingService, Depends(get_rating_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> RatingResponse:
    """Rate a material 1-5; rating again replaces the previous stars."""
    result = await rating_service.submit_rating(material_id, current_user, data.stars)
    return RatingResponse.model_validate(result)


@router.get("/{material_id}/rating/me", response_model=UserRatingResponse)
async def get_my_rating(
    material_id: UUID,
    rating_service: Annotated[IRatingService, Depends(get_rating_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> UserRatingResponse:
    stars = await rating_service.get_user_rating(material_id, current_user)
    return UserRatingResponse(user_rating=stars)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------
@router.post(
    "/{material_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    material_id: UUID,
    data: CommentCreateRequest,
    moderation_service: Annotated[IModerationService, Depends(get_moderation_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> CommentResponse:
    comment = await moderation_service.add_comment(material_id, current_user, data.text)
    return CommentResponse.model_validate(comment)


@router.post("/{material_id}/comments/{comment_id}/like", response_model=CommentResponse)
async def like_comment(
    material_id: UUID,
    comment_id: UUID,
    moderation_service: Annotated[IModerationService, Depends(get_moderation_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> CommentResponse:
    """Toggle a like; liking removes an existing dislike."""
    comment = await moderation_service.toggle_comment_reaction(
        material_id, comment_id, current_user, "like"
    )
    return CommentResponse.model_validate(comment)


@router.post("/{material_id}/comments/{comment_id}/dislike", response_model=CommentResponse)
async def dislike_comment(
    material_id: UUID,
    comment_id: UUID,
    moderation_service: Annotated[IModerationService, Depends(get_moderation_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> CommentResponse:
    comment = await moderation_service.toggle_comment_reaction(
        material_id, comment_id, current_user, "dislike"
    )
    return CommentResponse.model_validate(comment)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------
@router.post(
    "/{material_id}/report",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def report_material(
    material_id: UUID,
    data: ReportRequest,
    moderation_service: Annotated[IModerationService, Depends(get_moderation_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> MessageResponse:
    await moderation_service.report_material(material_id, current_user, data.reason)
    return MessageResponse(message="Material reported. An administrator will review it.")


@router.post(
    "/{material_id}/comments/{comment_id}/report",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def report_comment(
    material_id: UUID,
    comment_id: UUID,
    data: ReportRequest,
    moderation_service: Annotated[IModerationService, Depends(get_moderation_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> MessageResponse:
    await moderation_service.report_comment(material_id, comment_id, current_user, data.reason)
    return MessageResponse(message="Comment reported")
