"""Administrator moderation routes."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends

from app.api.schemas import (
    ModerationStatsResponse,
    ReportEntryResponse,
    ReportListResponse,
    ReportResolveRequest,
    ReportResolveResponse,
)
from app.core.dependencies import get_current_user, get_moderation_service
from app.domain.entities import User
from app.domain.services import IModerationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])

RESOLUTION_MESSAGES = {
    "material_deleted": "Material deleted",
    "comment_deleted": "Comment deleted",
    "report_dismissed": "Report dismissed",
}


@router.get("/reports", response_model=ReportListResponse)
async def list_reports(
    moderation_service: Annotated[IModerationService, Depends(get_moderation_service)],
    current_user: Annotated[User, Depends(get_current_user)],
    page: int = 1,
    limit: int = 20,
) -> ReportListResponse:
    """Material and comment reports in one feed, newest first."""
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    entries, total = await moderation_service.list_reports(
        current_user, skip=(page - 1) * limit, limit=limit
    )
    return ReportListResponse(
        reports=[ReportEntryResponse.model_validate(e) for e in entries],
        total=total,
        page=page,
        limit=limit,
    )


@router.put("/reports/{report_id}", response_model=ReportResolveResponse)
async def resolve_report(
    report_id: UUID,
    data: ReportResolveRequest,
    moderation_service: Annotated[IModerationService, Depends(get_moderation_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> ReportResolveResponse:
    outcome = await moderation_service.resolve_report(report_id, data.action, current_user)
    return ReportResolveResponse(message=RESOLUTION_MESSAGES[outcome], outcome=outcome)


@router.get("/stats", response_model=ModerationStatsResponse)
async def moderation_stats(
    moderation_service: Annotated[IModerationService, Depends(get_moderation_service)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> ModerationStatsResponse:
    stats = await moderation_service.moderation_stats(current_user)
    return ModerationStatsResponse(**stats)
