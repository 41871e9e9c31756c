"""Pydantic schemas for API requests and responses."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class UserSummary(BaseModel):
    id: UUID
    name: str
    avatar: Optional[str] = None
    reputation: float = 0.0

    model_config = ConfigDict(from_attributes=True)


class NotificationPreferencesSchema(BaseModel):
    rating: bool
    comment_on_my_material: bool
    comment_on_favorite: bool
    report: bool

    model_config = ConfigDict(from_attributes=True)


class NotificationPreferencesUpdate(BaseModel):
    """Partial update: omitted flags keep their current value."""

    rating: Optional[bool] = None
    comment_on_my_material: Optional[bool] = None
    comment_on_favorite: Optional[bool] = None
    report: Optional[bool] = None


class ProfileResponse(BaseModel):
    id: UUID
    name: str
    avatar: Optional[str] = None
    role: str
    reputation: float
    materials_uploaded: int
    materials_downloaded: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MyProfileResponse(ProfileResponse):
    email: str
    favorites: list[UUID] = []
    notification_preferences: NotificationPreferencesSchema


class ReputationResponse(BaseModel):
    reputation: float


class MaterialsCountResponse(BaseModel):
    materials_uploaded: int


# ---------------------------------------------------------------------------
# Materials
# ---------------------------------------------------------------------------
class RatingSummaryResponse(BaseModel):
    average: float
    count: int
    breakdown: list[int]

    model_config = ConfigDict(from_attributes=True)


class CommentResponse(BaseModel):
    id: UUID
    author_id: UUID
    text: str
    likes: list[UUID] = []
    dislikes: list[UUID] = []
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MaterialResponse(BaseModel):
    id: UUID
    author_id: UUID
    title: str
    description: Optional[str] = None
    discipline: str
    course: Optional[str] = None
    year: int
    material_type: str
    tags: list[str] = []
    file_name: str
    file_size: int
    mime_type: str
    rating: RatingSummaryResponse
    views: int
    downloads: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MaterialDetailResponse(MaterialResponse):
    comments: list[CommentResponse] = []
    user_rating: Optional[int] = None


class MaterialListResponse(BaseModel):
    materials: list[MaterialResponse]
    total: int
    page: int
    limit: int


class MaterialUpdate(BaseModel):
    """Metadata-only update; omitted fields are left unchanged."""

    title: Optional[str] = None
    description: Optional[str] = None
    discipline: Optional[str] = None
    course: Optional[str] = None
    year: Optional[int] = None
    material_type: Optional[str] = None
    tags: Optional[list[str]] = None


class PublicProfileResponse(BaseModel):
    user: ProfileResponse
    materials: list[MaterialResponse]


# ---------------------------------------------------------------------------
# Engagement
# ---------------------------------------------------------------------------
class RatingRequest(BaseModel):
    stars: Any = Field(..., description="Integer from 1 to 5")


class RatingResponse(BaseModel):
    average: float
    count: int
    breakdown: list[int]
    user_rating: int
    is_update: bool

    model_config = ConfigDict(from_attributes=True)


class UserRatingResponse(BaseModel):
    user_rating: Optional[int] = None


class CommentCreateRequest(BaseModel):
    text: str


class ReportRequest(BaseModel):
    reason: str


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------
class ReportResolveRequest(BaseModel):
    action: str = Field(..., description="'delete' or 'ignore'")


class ReportResolveResponse(BaseModel):
    message: str
    outcome: str


class ReportEntryResponse(BaseModel):
    id: UUID
    kind: str
    status: str
    reason: str
    created_at: datetime
    material_id: UUID
    material_title: str
    material_author_id: UUID
    reporter_id: UUID
    reporter: Optional[UserSummary] = None
    comment_id: Optional[UUID] = None
    comment_excerpt: Optional[str] = None
    comment_author_id: Optional[UUID] = None

    model_config = ConfigDict(from_attributes=True)


class ReportListResponse(BaseModel):
    reports: list[ReportEntryResponse]
    total: int
    page: int
    limit: int


class ModerationStatsResponse(BaseModel):
    total_users: int
    total_admins: int
    total_students: int
    total_materials: int
    total_reports: int
    pending_reports: int


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
class NotificationResponse(BaseModel):
    id: UUID
    type: str
    material_id: UUID
    actor_id: Optional[UUID] = None
    message: str
    is_read: bool
    metadata: dict = {}
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int
