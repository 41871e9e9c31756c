"""Domain entities for StudyShare."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID

ROLE_STUDENT = "student"
ROLE_ADMIN = "admin"

STAR_VALUES = (1, 2, 3, 4, 5)

NOTIFICATION_TYPES = ("comment", "rating", "favorite", "report")


@dataclass
class NotificationPreferences:
    """Per-user opt-outs for each notification kind (all on by default)."""

    rating: bool = True
    comment_on_my_material: bool = True
    comment_on_favorite: bool = True
    report: bool = True  # only meaningful for administrators


@dataclass
class User:
    id: UUID
    name: str
    email: str
    role: str = ROLE_STUDENT
    reputation: float = 0.0
    materials_uploaded: int = 0
    materials_downloaded: int = 0
    favorites: list[UUID] = field(default_factory=list)
    notification_preferences: NotificationPreferences = field(
        default_factory=NotificationPreferences
    )
    avatar: Optional[str] = None
    is_active: bool = True
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


@dataclass
class Report:
    id: UUID
    reporter_id: UUID
    reason: str
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class UserRating:
    user_id: UUID
    stars: int
    rated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class RatingSummary:
    """Derived rating distribution, never set directly by clients.

    ``breakdown[i]`` counts the ratings with ``i + 1`` stars.
    """

    average: float = 0.0
    count: int = 0
    breakdown: list[int] = field(default_factory=lambda: [0, 0, 0, 0, 0])


@dataclass
class Comment:
    id: UUID
    author_id: UUID
    text: str
    likes: list[UUID] = field(default_factory=list)
    dislikes: list[UUID] = field(default_factory=list)
    reports: list[Report] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class Material:
    """Aggregate root: core fields plus the engagement data it owns.

    ``user_ratings``, ``comments`` and ``reports`` are persisted together with
    the material as one consistency unit.  ``version`` is bumped on every
    whole-aggregate save and used for optimistic concurrency control.
    """

    id: UUID
    author_id: UUID
    title: str
    discipline: str
    year: int
    material_type: str
    file_path: str
    file_name: str
    file_size: int
    mime_type: str
    description: Optional[str] = None
    course: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    rating: RatingSummary = field(default_factory=RatingSummary)
    user_ratings: list[UserRating] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    reports: list[Report] = field(default_factory=list)
    views: int = 0
    downloads: int = 0
    is_active: bool = True
    is_approved: bool = True
    version: int = 0
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def is_visible(self) -> bool:
        return self.is_active and self.is_approved

    def find_comment(self, comment_id: UUID) -> Optional[Comment]:
        for comment in self.comments:
            if comment.id == comment_id:
                return comment
        return None


@dataclass
class Notification:
    id: UUID
    recipient_id: UUID
    type: str  # comment | rating | favorite | report
    material_id: UUID
    message: str
    actor_id: Optional[UUID] = None  # None for system notifications
    is_read: bool = False
    metadata: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class ReportLocation:
    """Entry of the report index: where a report id lives."""

    report_id: UUID
    material_id: UUID
    comment_id: Optional[UUID] = None


@dataclass
class ReportEntry:
    """One row of the admin moderation feed (material or comment report)."""

    id: UUID
    kind: str  # material | comment
    material_id: UUID
    material_title: str
    material_author_id: UUID
    reporter_id: UUID
    reason: str
    created_at: datetime
    status: str = "pending"
    reporter: Optional[User] = None
    comment_id: Optional[UUID] = None
    comment_excerpt: Optional[str] = None
    comment_author_id: Optional[UUID] = None


@dataclass
class MaterialQuery:
    """Listing filters for the materials catalogue."""

    search: Optional[str] = None
    discipline: Optional[str] = None
    course: Optional[str] = None
    year: Optional[int] = None
    material_type: Optional[str] = None
    sort: str = "recent"  # recent | rating | downloads | views


@dataclass
class RatingResult:
    """What ``submit_rating`` hands back to the caller."""

    average: float
    count: int
    breakdown: list[int]
    user_rating: int
    is_update: bool = False
