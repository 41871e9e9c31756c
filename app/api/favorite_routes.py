"""Favorites routes for the authenticated user."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.api.schemas import MaterialResponse, MessageResponse
from app.core.dependencies import get_current_user, get_favorite_service
from app.domain.entities import User
from app.services.favorite_service import FavoriteService

router = APIRouter(prefix="/favorites", tags=["favorites"])


@router.get("/", response_model=list[MaterialResponse])
async def list_favorites(
    favorite_service: Annotated[FavoriteService, Depends(get_favorite_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> list[MaterialResponse]:
    materials = await favorite_service.list_favorites(current_user)
    return [MaterialResponse.model_validate(m) for m in materials]


@router.get("/{material_id}/status")
async def favorite_status(
    material_id: UUID,
    favorite_service: Annotated[FavoriteService, Depends(get_favorite_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    return {"is_favorite": await favorite_service.is_favorite(current_user, material_id)}


@router.post("/{material_id}", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def add_favorite(
    material_id: UUID,
    favorite_service: Annotated[FavoriteService, Depends(get_favorite_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> MessageResponse:
    await favorite_service.add_favorite(current_user, material_id)
    return MessageResponse(message="Added to favorites")


@router.delete("/{material_id}", response_model=MessageResponse)
async def remove_favorite(
    material_id: UUID,
    favorite_service: Annotated[FavoriteService, Depends(get_favorite_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> MessageResponse:
    await favorite_service.remove_favorite(current_user, material_id)
    return MessageResponse(message="Removed from favorites")
