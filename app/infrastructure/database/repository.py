"""Repository implementations."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, func, not_, or_, select, update
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.entities import (
    Comment,
    Material,
    MaterialQuery,
    Notification,
    NotificationPreferences,
    RatingSummary,
    Report,
    ReportLocation,
    User,
    UserRating,
)
from app.domain.exceptions import ConcurrentUpdateError
from app.domain.repositories import IMaterialRepository, INotificationRepository, IUserRepository
from app.infrastructure.database.models import (
    MaterialModel,
    NotificationModel,
    ReportIndexModel,
    UserModel,
)

UUID_ARRAY = ARRAY(PG_UUID(as_uuid=True))


# ---------------------------------------------------------------------------
# User Repository
# ---------------------------------------------------------------------------
class UserRepository(IUserRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: User) -> User:
        prefs = user.notification_preferences
        db_user = UserModel(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            avatar=user.avatar,
            reputation=user.reputation,
            materials_uploaded=user.materials_uploaded,
            materials_downloaded=user.materials_downloaded,
            favorites=list(user.favorites),
            notify_rating=prefs.rating,
            notify_comment_on_my_material=prefs.comment_on_my_material,
            notify_comment_on_favorite=prefs.comment_on_favorite,
            notify_report=prefs.report,
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )
        self.session.add(db_user)
        await self.session.commit()
        await self.session.refresh(db_user)
        return self._to_entity(db_user)

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        result = await self.session.execute(
            select(UserModel)
            .where(UserModel.id == user_id)
            .execution_options(populate_existing=True)
        )
        db_user = result.scalar_one_or_none()
        return self._to_entity(db_user) if db_user else None

    async def get_many(self, user_ids: list[UUID]) -> dict[UUID, User]:
        if not user_ids:
            return {}
        result = await self.session.execute(select(UserModel).where(UserModel.id.in_(user_ids)))
        return {u.id: self._to_entity(u) for u in result.scalars().all()}

    async def list_admins(self) -> list[User]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.role == "admin", UserModel.is_active.is_(True))
        )
        return [self._to_entity(u) for u in result.scalars().all()]

    async def list_favoriting(self, material_id: UUID) -> list[User]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.favorites.any(material_id))
        )
        return [self._to_entity(u) for u in result.scalars().all()]

    async def count(self, role: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(UserModel)
        if role is not None:
            stmt = stmt.where(UserModel.role == role)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def set_reputation(self, user_id: UUID, reputation: float) -> None:
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(reputation=reputation, updated_at=datetime.utcnow())
        )
        await self.session.commit()

    async def adjust_materials_uploaded(self, user_id: UUID, delta: int) -> int:
        result = await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(materials_uploaded=UserModel.materials_uploaded + delta)
            .returning(UserModel.materials_uploaded)
        )
        value = result.scalar_one_or_none()
        await self.session.commit()
        return value if value is not None else 0

    async def set_materials_uploaded(self, user_id: UUID, count: int) -> None:
        await self.session.execute(
            update(UserModel).where(UserModel.id == user_id).values(materials_uploaded=count)
        )
        await self.session.commit()

    async def increment_materials_downloaded(self, user_id: UUID) -> None:
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(materials_downloaded=UserModel.materials_downloaded + 1)
        )
        await self.session.commit()

    async def add_favorite(self, user_id: UUID, material_id: UUID) -> bool:
        result = await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id, not_(UserModel.favorites.any(material_id)))
            .values(favorites=func.array_append(UserModel.favorites, material_id, type_=UUID_ARRAY))
        )
        await self.session.commit()
        return result.rowcount > 0

    async def remove_favorite(self, user_id: UUID, material_id: UUID) -> bool:
        result = await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id, UserModel.favorites.any(material_id))
            .values(favorites=func.array_remove(UserModel.favorites, material_id, type_=UUID_ARRAY))
        )
        await self.session.commit()
        return result.rowcount > 0

    async def remove_favorite_everywhere(self, material_id: UUID) -> int:
        result = await self.session.execute(
            update(UserModel)
            .where(UserModel.favorites.any(material_id))
            .values(favorites=func.array_remove(UserModel.favorites, material_id, type_=UUID_ARRAY))
        )
        await self.session.commit()
        return result.rowcount

    async def update_notification_preferences(
        self, user_id: UUID, preferences: NotificationPreferences
    ) -> User:
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(
                notify_rating=preferences.rating,
                notify_comment_on_my_material=preferences.comment_on_my_material,
                notify_comment_on_favorite=preferences.comment_on_favorite,
                notify_report=preferences.report,
                updated_at=datetime.utcnow(),
            )
        )
        await self.session.commit()
        return await self.get_by_id(user_id)

    @staticmethod
    def _to_entity(model: UserModel) -> User:
        return User(
            id=model.id,
            name=model.name,
            email=model.email,
            role=model.role,
            reputation=model.reputation,
            materials_uploaded=model.materials_uploaded,
            materials_downloaded=model.materials_downloaded,
            favorites=list(model.favorites or []),
            notification_preferences=NotificationPreferences(
                rating=model.notify_rating,
                comment_on_my_material=model.notify_comment_on_my_material,
                comment_on_favorite=model.notify_comment_on_favorite,
                report=model.notify_report,
            ),
            avatar=model.avatar,
            is_active=model.is_active,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


# ---------------------------------------------------------------------------
# Embedded document (de)serialisation
# ---------------------------------------------------------------------------
def _report_to_doc(report: Report) -> dict:
    return {
        "id": str(report.id),
        "reporter_id": str(report.reporter_id),
        "reason": report.reason,
        "created_at": report.created_at.isoformat(),
    }


def _report_from_doc(doc: dict) -> Report:
    return Report(
        id=UUID(doc["id"]),
        reporter_id=UUID(doc["reporter_id"]),
        reason=doc["reason"],
        created_at=datetime.fromisoformat(doc["created_at"]),
    )


def _comment_to_doc(comment: Comment) -> dict:
    return {
        "id": str(comment.id),
        "author_id": str(comment.author_id),
        "text": comment.text,
        "likes": [str(u) for u in comment.likes],
        "dislikes": [str(u) for u in comment.dislikes],
        "reports": [_report_to_doc(r) for r in comment.reports],
        "created_at": comment.created_at.isoformat(),
    }


def _comment_from_doc(doc: dict) -> Comment:
    return Comment(
        id=UUID(doc["id"]),
        author_id=UUID(doc["author_id"]),
        text=doc["text"],
        likes=[UUID(u) for u in doc.get("likes", [])],
        dislikes=[UUID(u) for u in doc.get("dislikes", [])],
        reports=[_report_from_doc(r) for r in doc.get("reports", [])],
        created_at=datetime.fromisoformat(doc["created_at"]),
    )


def _rating_to_doc(rating: UserRating) -> dict:
    return {
        "user_id": str(rating.user_id),
        "stars": rating.stars,
        "rated_at": rating.rated_at.isoformat(),
    }


def _rating_from_doc(doc: dict) -> UserRating:
    return UserRating(
        user_id=UUID(doc["user_id"]),
        stars=int(doc["stars"]),
        rated_at=datetime.fromisoformat(doc["rated_at"]),
    )


# ---------------------------------------------------------------------------
# Material Repository
# ---------------------------------------------------------------------------
class MaterialRepository(IMaterialRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, material: Material) -> Material:
        db_material = MaterialModel(
            id=material.id,
            author_id=material.author_id,
            views=material.views,
            downloads=material.downloads,
            version=material.version,
            created_at=material.created_at,
            **self._aggregate_values(material),
        )
        self.session.add(db_material)
        self.session.add_all(self._index_rows(material))
        await self.session.commit()
        await self.session.refresh(db_material)
        return self._to_entity(db_material)

    async def get_by_id(self, material_id: UUID) -> Optional[Material]:
        # Re-read from the database even when the row is already in the
        # identity map; retries depend on seeing the latest version.
        result = await self.session.execute(
            select(MaterialModel)
            .where(MaterialModel.id == material_id)
            .execution_options(populate_existing=True)
        )
        db_material = result.scalar_one_or_none()
        return self._to_entity(db_material) if db_material else None

    async def save(self, material: Material) -> Material:
        result = await self.session.execute(
            update(MaterialModel)
            .where(MaterialModel.id == material.id, MaterialModel.version == material.version)
            .values(version=MaterialModel.version + 1, **self._aggregate_values(material))
            .returning(MaterialModel.version)
            .execution_options(synchronize_session=False)
        )
        new_version = result.scalar_one_or_none()
        if new_version is None:
            await self.session.rollback()
            raise ConcurrentUpdateError(
                f"Material {material.id} changed since version {material.version}"
            )

        await self.session.execute(
            delete(ReportIndexModel).where(ReportIndexModel.material_id == material.id)
        )
        self.session.add_all(self._index_rows(material))
        await self.session.commit()
        material.version = new_version
        return material

    async def delete(self, material_id: UUID) -> bool:
        result = await self.session.execute(
            delete(MaterialModel).where(MaterialModel.id == material_id)
        )
        await self.session.commit()
        return result.rowcount > 0

    async def query(
        self, filters: MaterialQuery, skip: int = 0, limit: int = 20
    ) -> list[Material]:
        stmt = self._apply_filters(select(MaterialModel), filters)
        if filters.sort == "rating":
            stmt = stmt.order_by(MaterialModel.rating_average.desc(), MaterialModel.created_at.desc())
        elif filters.sort == "downloads":
            stmt = stmt.order_by(MaterialModel.downloads.desc(), MaterialModel.created_at.desc())
        elif filters.sort == "views":
            stmt = stmt.order_by(MaterialModel.views.desc(), MaterialModel.created_at.desc())
        else:
            stmt = stmt.order_by(MaterialModel.created_at.desc())
        result = await self.session.execute(stmt.offset(skip).limit(limit))
        return [self._to_entity(m) for m in result.scalars().all()]

    async def count(self, filters: MaterialQuery) -> int:
        stmt = self._apply_filters(select(func.count()).select_from(MaterialModel), filters)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def list_by_author(
        self, author_id: UUID, *, active_only: bool = True, approved_only: bool = False
    ) -> list[Material]:
        stmt = self._author_filter(select(MaterialModel), author_id, active_only, approved_only)
        result = await self.session.execute(stmt.order_by(MaterialModel.created_at.desc()))
        return [self._to_entity(m) for m in result.scalars().all()]

    async def count_by_author(
        self, author_id: UUID, *, active_only: bool = True, approved_only: bool = False
    ) -> int:
        stmt = self._author_filter(
            select(func.count()).select_from(MaterialModel), author_id, active_only, approved_only
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def get_many(self, material_ids: list[UUID]) -> list[Material]:
        if not material_ids:
            return []
        result = await self.session.execute(
            select(MaterialModel).where(MaterialModel.id.in_(material_ids))
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def find_report(self, report_id: UUID) -> Optional[ReportLocation]:
        result = await self.session.execute(
            select(ReportIndexModel).where(ReportIndexModel.report_id == report_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return ReportLocation(
            report_id=row.report_id, material_id=row.material_id, comment_id=row.comment_id
        )

    async def list_with_reports(self) -> list[Material]:
        reported = select(ReportIndexModel.material_id).distinct()
        result = await self.session.execute(
            select(MaterialModel).where(MaterialModel.id.in_(reported))
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def increment_views(self, material_id: UUID) -> int:
        return await self._increment(material_id, MaterialModel.views)

    async def increment_downloads(self, material_id: UUID) -> int:
        return await self._increment(material_id, MaterialModel.downloads)

    async def _increment(self, material_id: UUID, column) -> int:
        result = await self.session.execute(
            update(MaterialModel)
            .where(MaterialModel.id == material_id)
            .values({column: column + 1})
            .returning(column)
            .execution_options(synchronize_session=False)
        )
        value = result.scalar_one_or_none()
        await self.session.commit()
        return value or 0

    # -- helpers -----------------------------------------------------------

    @staticmethod
    def _apply_filters(stmt, filters: MaterialQuery):
        stmt = stmt.where(MaterialModel.is_active.is_(True), MaterialModel.is_approved.is_(True))
        if filters.search:
            pattern = f"%{filters.search}%"
            stmt = stmt.where(
                or_(MaterialModel.title.ilike(pattern), MaterialModel.description.ilike(pattern))
            )
        if filters.discipline:
            stmt = stmt.where(MaterialModel.discipline.ilike(f"%{filters.discipline}%"))
        if filters.course:
            stmt = stmt.where(MaterialModel.course.ilike(f"%{filters.course}%"))
        if filters.year is not None:
            stmt = stmt.where(MaterialModel.year == filters.year)
        if filters.material_type:
            stmt = stmt.where(MaterialModel.material_type == filters.material_type)
        return stmt

    @staticmethod
    def _author_filter(stmt, author_id: UUID, active_only: bool, approved_only: bool):
        stmt = stmt.where(MaterialModel.author_id == author_id)
        if active_only:
            stmt = stmt.where(MaterialModel.is_active.is_(True))
        if approved_only:
            stmt = stmt.where(MaterialModel.is_approved.is_(True))
        return stmt

    @staticmethod
    def _aggregate_values(material: Material) -> dict:
        """Every column a whole-aggregate save writes (never views/downloads)."""
        return {
            "title": material.title,
            "description": material.description,
            "discipline": material.discipline,
            "course": material.course,
            "year": material.year,
            "material_type": material.material_type,
            "tags": list(material.tags),
            "file_path": material.file_path,
            "file_name": material.file_name,
            "file_size": material.file_size,
            "mime_type": material.mime_type,
            "rating_average": material.rating.average,
            "rating_count": material.rating.count,
            "rating_breakdown": list(material.rating.breakdown),
            "user_ratings": [_rating_to_doc(r) for r in material.user_ratings],
            "comments": [_comment_to_doc(c) for c in material.comments],
            "reports": [_report_to_doc(r) for r in material.reports],
            "is_active": material.is_active,
            "is_approved": material.is_approved,
            "updated_at": material.updated_at,
        }

    @staticmethod
    def _index_rows(material: Material) -> list[ReportIndexModel]:
        rows = [
            ReportIndexModel(report_id=r.id, material_id=material.id, comment_id=None)
            for r in material.reports
        ]
        for comment in material.comments:
            rows.extend(
                ReportIndexModel(report_id=r.id, material_id=material.id, comment_id=comment.id)
                for r in comment.reports
            )
        return rows

    @staticmethod
    def _to_entity(model: MaterialModel) -> Material:
        return Material(
            id=model.id,
            author_id=model.author_id,
            title=model.title,
            discipline=model.discipline,
            year=model.year,
            material_type=model.material_type,
            file_path=model.file_path,
            file_name=model.file_name,
            file_size=model.file_size,
            mime_type=model.mime_type,
            description=model.description,
            course=model.course,
            tags=list(model.tags or []),
            rating=RatingSummary(
                average=model.rating_average,
                count=model.rating_count,
                breakdown=list(model.rating_breakdown or [0, 0, 0, 0, 0]),
            ),
            user_ratings=[_rating_from_doc(d) for d in model.user_ratings or []],
            comments=[_comment_from_doc(d) for d in model.comments or []],
            reports=[_report_from_doc(d) for d in model.reports or []],
            views=model.views,
            downloads=model.downloads,
            is_active=model.is_active,
            is_approved=model.is_approved,
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


# ---------------------------------------------------------------------------
# Notification Repository
# ---------------------------------------------------------------------------
class NotificationRepository(INotificationRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, notification: Notification) -> Notification:
        db_notification = NotificationModel(
            id=notification.id,
            recipient_id=notification.recipient_id,
            type=notification.type,
            material_id=notification.material_id,
            actor_id=notification.actor_id,
            message=notification.message,
            is_read=notification.is_read,
            extra=notification.metadata,
            created_at=notification.created_at,
        )
        self.session.add(db_notification)
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(db_notification)
        return self._to_entity(db_notification)

    async def list_for_user(
        self, user_id: UUID, limit: int = 50, unread_only: bool = False
    ) -> list[Notification]:
        stmt = select(NotificationModel).where(NotificationModel.recipient_id == user_id)
        if unread_only:
            stmt = stmt.where(NotificationModel.is_read.is_(False))
        result = await self.session.execute(
            stmt.order_by(NotificationModel.created_at.desc()).limit(limit)
        )
        return [self._to_entity(n) for n in result.scalars().all()]

    async def count_unread(self, user_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(NotificationModel)
            .where(NotificationModel.recipient_id == user_id, NotificationModel.is_read.is_(False))
        )
        return result.scalar_one()

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> Optional[Notification]:
        result = await self.session.execute(
            select(NotificationModel).where(
                NotificationModel.id == notification_id,
                NotificationModel.recipient_id == user_id,
            )
        )
        db_notification = result.scalar_one_or_none()
        if db_notification is None:
            return None
        db_notification.is_read = True
        await self.session.commit()
        await self.session.refresh(db_notification)
        return self._to_entity(db_notification)

    async def mark_all_read(self, user_id: UUID) -> int:
        result = await self.session.execute(
            update(NotificationModel)
            .where(NotificationModel.recipient_id == user_id, NotificationModel.is_read.is_(False))
            .values(is_read=True)
        )
        await self.session.commit()
        return result.rowcount

    async def delete(self, notification_id: UUID, user_id: UUID) -> bool:
        result = await self.session.execute(
            delete(NotificationModel).where(
                NotificationModel.id == notification_id,
                NotificationModel.recipient_id == user_id,
            )
        )
        await self.session.commit()
        return result.rowcount > 0

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            recipient_id=model.recipient_id,
            type=model.type,
            material_id=model.material_id,
            message=model.message,
            actor_id=model.actor_id,
            is_read=model.is_read,
            metadata=dict(model.extra or {}),
            created_at=model.created_at,
        )
