"""User profile routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends

from app.api.schemas import (
    MaterialResponse,
    MaterialsCountResponse,
    MyProfileResponse,
    ProfileResponse,
    PublicProfileResponse,
    ReputationResponse,
)
from app.core.dependencies import get_current_user, get_user_service
from app.domain.entities import User
from app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=MyProfileResponse)
async def get_my_profile(
    user_service: Annotated[UserService, Depends(get_user_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> MyProfileResponse:
    """The caller's profile; reputation is recomputed on every call."""
    user = await user_service.get_my_profile(current_user)
    return MyProfileResponse.model_validate(user)


@router.post("/me/reputation/recalculate", response_model=ReputationResponse)
async def recalculate_reputation(
    user_service: Annotated[UserService, Depends(get_user_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> ReputationResponse:
    reputation = await user_service.recalculate_my_reputation(current_user)
    return ReputationResponse(reputation=reputation)


@router.post("/me/materials/recount", response_model=MaterialsCountResponse)
async def recount_materials(
    user_service: Annotated[UserService, Depends(get_user_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> MaterialsCountResponse:
    count = await user_service.recount_my_materials(current_user)
    return MaterialsCountResponse(materials_uploaded=count)


@router.get("/{user_id}", response_model=PublicProfileResponse)
async def get_profile(
    user_id: UUID,
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> PublicProfileResponse:
    user, materials = await user_service.get_profile(user_id)
    return PublicProfileResponse(
        user=ProfileResponse.model_validate(user),
        materials=[MaterialResponse.model_validate(m) for m in materials],
    )
