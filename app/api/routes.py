"""Material API routes (catalogue, upload, detail with view counting, download)."""

import logging
from typing import Annotated, Optional
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status

from app.api.schemas import (
    MaterialDetailResponse,
    MaterialListResponse,
    MaterialResponse,
    MaterialUpdate,
)
from app.core.dependencies import (
    get_current_user,
    get_material_service,
    get_optional_user,
    get_viewer_identity,
)
from app.domain.entities import MaterialQuery, User
from app.domain.services import IMaterialService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/materials", tags=["materials"])


@router.get("/", response_model=MaterialListResponse)
async def list_materials(
    material_service: Annotated[IMaterialService, Depends(get_material_service)],
    search: Optional[str] = None,
    discipline: Optional[str] = None,
    course: Optional[str] = None,
    year: Optional[int] = None,
    material_type: Optional[str] = None,
    sort: str = "recent",
    page: int = 1,
    limit: int = 20,
) -> MaterialListResponse:
    """List active, approved materials with filters and pagination."""
    if sort not in ("recent", "rating", "downloads", "views"):
        raise HTTPException(status_code=400, detail="Invalid sort")
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    filters = MaterialQuery(
        search=search,
        discipline=discipline,
        course=course,
        year=year,
        material_type=material_type,
        sort=sort,
    )
    materials, total = await material_service.list_materials(
        filters, skip=(page - 1) * limit, limit=limit
    )
    return MaterialListResponse(
        materials=[MaterialResponse.model_validate(m) for m in materials],
        total=total,
        page=page,
        limit=limit,
    )


@router.post("/", response_model=MaterialResponse, status_code=status.HTTP_201_CREATED)
async def upload_material(
    file: Annotated[UploadFile, File()],
    title: Annotated[str, Form()],
    discipline: Annotated[str, Form()],
    year: Annotated[int, Form()],
    material_type: Annotated[str, Form()],
    material_service: Annotated[IMaterialService, Depends(get_material_service)],
    current_user: Annotated[User, Depends(get_current_user)],
    description: Annotated[Optional[str], Form()] = None,
    course: Annotated[Optional[str], Form()] = None,
    tags: Annotated[Optional[str], Form(description="Comma-separated")] = None,
) -> MaterialResponse:
    """Upload a study material file with its metadata."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="File is required")

    file_content = await file.read()
    material = await material_service.create_material(
        author=current_user,
        file_content=file_content,
        filename=file.filename,
        mime_type=file.content_type or "application/octet-stream",
        title=title,
        discipline=discipline,
        year=year,
        material_type=material_type,
        description=description,
        course=course,
        tags=[t for t in (tags or "").split(",") if t.strip()],
    )
    return MaterialResponse.model_validate(material)


@router.get("/{material_id}", response_model=MaterialDetailResponse)
async def get_material(
    material_id: UUID,
    material_service: Annotated[IMaterialService, Depends(get_material_service)],
    viewer_identity: Annotated[str, Depends(get_viewer_identity)],
    current_user: Annotated[Optional[User], Depends(get_optional_user)],
) -> MaterialDetailResponse:
    """Material detail; counts a view at most once per viewer per dedup window."""
    material, user_rating = await material_service.get_material(
        material_id, viewer_identity, viewer=current_user
    )
    detail = MaterialDetailResponse.model_validate(material)
    return detail.model_copy(update={"user_rating": user_rating})


@router.put("/{material_id}", response_model=MaterialResponse)
async def update_material(
    material_id: UUID,
    data: MaterialUpdate,
    material_service: Annotated[IMaterialService, Depends(get_material_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> MaterialResponse:
    """Update material metadata (author or admin)."""
    material = await material_service.update_material(
        material_id, current_user, **data.model_dump(exclude_unset=True)
    )
    return MaterialResponse.model_validate(material)


@router.delete("/{material_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_material(
    material_id: UUID,
    material_service: Annotated[IMaterialService, Depends(get_material_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> Response:
    """Permanently delete a material (author or admin)."""
    await material_service.delete_material(material_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{material_id}/download")
async def download_material(
    material_id: UUID,
    material_service: Annotated[IMaterialService, Depends(get_material_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> Response:
    """Stream the material file and count the download."""
    content, mime_type, filename = await material_service.download_material(
        material_id, current_user
    )
    return Response(
        content=content,
        media_type=mime_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )
