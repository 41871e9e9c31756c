"""Material service with business logic."""

import logging
from datetime import datetime
from pathlib import PurePath
from typing import Optional
from uuid import UUID, uuid4

from app.domain.entities import Material, MaterialQuery, User
from app.domain.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.domain.repositories import (
    IMaterialRepository,
    IStorageService,
    IUserRepository,
    IViewTracker,
)
from app.domain.services import IBackgroundDispatcher, IMaterialService
from app.services.aggregate import DEFAULT_ATTEMPTS, mutate_material
from app.services.reputation_service import ReputationService

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 2000

DEFAULT_EXTENSIONS = (".pdf", ".doc", ".docx", ".ppt", ".pptx", ".jpg", ".jpeg", ".png")
DEFAULT_MAX_UPLOAD_SIZE = 25 * 1024 * 1024
DEFAULT_MATERIAL_TYPES = ("Notes", "Summary", "Exercises", "Exam", "Slides")
DEFAULT_YEARS = (1, 2, 3, 4, 5)

UPDATABLE_FIELDS = ("title", "description", "discipline", "course", "year", "material_type", "tags")


class MaterialService(IMaterialService):
    """Material lifecycle: upload, read with view counting, edit, delete, download."""

    def __init__(
        self,
        material_repository: IMaterialRepository,
        user_repository: IUserRepository,
        storage_service: IStorageService,
        view_tracker: IViewTracker,
        dispatcher: IBackgroundDispatcher,
        *,
        allowed_extensions: tuple[str, ...] = DEFAULT_EXTENSIONS,
        max_upload_size: int = DEFAULT_MAX_UPLOAD_SIZE,
        material_types: tuple[str, ...] = DEFAULT_MATERIAL_TYPES,
        available_years: tuple[int, ...] = DEFAULT_YEARS,
        save_attempts: int = DEFAULT_ATTEMPTS,
    ):
        self.material_repository = material_repository
        self.user_repository = user_repository
        self.storage_service = storage_service
        self.view_tracker = view_tracker
        self.dispatcher = dispatcher
        self.reputation = ReputationService(material_repository, user_repository)
        self.allowed_extensions = tuple(ext.lower() for ext in allowed_extensions)
        self.max_upload_size = max_upload_size
        self.material_types = tuple(material_types)
        self.available_years = tuple(available_years)
        self.save_attempts = save_attempts

    # -----------------------------------------------------------------------
    # Validation
    # -----------------------------------------------------------------------

    def _validate_file(self, file_content: bytes, filename: str) -> None:
        extension = PurePath(filename).suffix.lower()
        if extension not in self.allowed_extensions:
            raise ValidationError(
                f"Unsupported file type. Allowed: {', '.join(self.allowed_extensions)}"
            )
        if not file_content:
            raise ValidationError("Uploaded file is empty")
        if len(file_content) > self.max_upload_size:
            raise ValidationError(
                f"File too large: {len(file_content)} bytes (max {self.max_upload_size})"
            )

    def _validate_metadata(self, fields: dict) -> dict:
        """Normalise and check metadata; returns only the keys present in *fields*."""
        cleaned = {}
        if "title" in fields:
            title = (fields["title"] or "").strip()
            if not title:
                raise ValidationError("Title is required")
            if len(title) > TITLE_MAX_LENGTH:
                raise ValidationError(f"Title cannot exceed {TITLE_MAX_LENGTH} characters")
            cleaned["title"] = title
        if "description" in fields:
            description = (fields["description"] or "").strip() or None
            if description and len(description) > DESCRIPTION_MAX_LENGTH:
                raise ValidationError(
                    f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters"
                )
            cleaned["description"] = description
        if "discipline" in fields:
            discipline = (fields["discipline"] or "").strip()
            if not discipline:
                raise ValidationError("Discipline is required")
            cleaned["discipline"] = discipline
        if "course" in fields:
            cleaned["course"] = (fields["course"] or "").strip() or None
        if "year" in fields:
            if fields["year"] not in self.available_years:
                raise ValidationError(
                    f"Invalid year. Available: {', '.join(str(y) for y in self.available_years)}"
                )
            cleaned["year"] = fields["year"]
        if "material_type" in fields:
            if fields["material_type"] not in self.material_types:
                raise ValidationError(
                    f"Invalid material type. Available: {', '.join(self.material_types)}"
                )
            cleaned["material_type"] = fields["material_type"]
        if "tags" in fields:
            cleaned["tags"] = [t.strip() for t in fields["tags"] or [] if t and t.strip()]
        return cleaned

    @staticmethod
    def _check_owner_or_admin(material: Material, actor: User) -> None:
        if material.author_id != actor.id and not actor.is_admin:
            raise AuthorizationError("Only the author or an administrator can change this material")

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    async def create_material(
        self,
        author: User,
        file_content: bytes,
        filename: str,
        mime_type: str,
        title: str,
        discipline: str,
        year: int,
        material_type: str,
        description: Optional[str] = None,
        course: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> Material:
        self._validate_file(file_content, filename)
        metadata = self._validate_metadata(
            {
                "title": title,
                "discipline": discipline,
                "year": year,
                "material_type": material_type,
                "description": description,
                "course": course,
                "tags": tags or [],
            }
        )

        file_path = await self.storage_service.save_file(file_content, filename)
        logger.info("File saved: %s", file_path)

        now = datetime.utcnow()
        material = Material(
            id=uuid4(),
            author_id=author.id,
            file_path=file_path,
            file_name=filename,
            file_size=len(file_content),
            mime_type=mime_type,
            created_at=now,
            updated_at=now,
            **metadata,
        )
        created = await self.material_repository.create(material)
        await self.reputation.register_upload(author.id)
        logger.info("Material %s uploaded by user %s: '%s'", created.id, author.id, created.title)
        return created

    async def get_material(
        self, material_id: UUID, viewer_identity: str, viewer: Optional[User] = None
    ) -> tuple[Material, Optional[int]]:
        material = await self.material_repository.get_by_id(material_id)
        if material is None or not material.is_visible:
            raise NotFoundError("Material not found")

        if await self.view_tracker.register_view(material.id, viewer_identity):
            material.views = await self.material_repository.increment_views(material.id)

        user_rating = None
        if viewer is not None:
            user_rating = next(
                (r.stars for r in material.user_ratings if r.user_id == viewer.id), None
            )
        return material, user_rating

    async def list_materials(
        self, filters: MaterialQuery, skip: int = 0, limit: int = 20
    ) -> tuple[list[Material], int]:
        materials = await self.material_repository.query(filters, skip, limit)
        total = await self.material_repository.count(filters)
        return materials, total

    async def update_material(self, material_id: UUID, actor: User, **fields) -> Material:
        """Edit metadata fields only; engagement data is never touched here."""
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Field(s) cannot be updated: {', '.join(sorted(unknown))}")
        changes = self._validate_metadata({k: v for k, v in fields.items() if v is not None})

        def apply(material: Material) -> None:
            if not material.is_active:
                raise NotFoundError("Material not found")
            self._check_owner_or_admin(material, actor)
            for name, value in changes.items():
                setattr(material, name, value)
            material.updated_at = datetime.utcnow()

        material, _ = await mutate_material(
            self.material_repository,
            material_id,
            apply,
            require_visible=False,
            attempts=self.save_attempts,
        )
        logger.info("Material %s updated by user %s (%s)", material_id, actor.id, ", ".join(changes))
        return material

    async def delete_material(self, material_id: UUID, actor: User) -> None:
        material = await self.material_repository.get_by_id(material_id)
        if material is None or not material.is_active:
            raise NotFoundError("Material not found")
        self._check_owner_or_admin(material, actor)
        await self.purge_material(material)
        logger.info("Material %s deleted by user %s", material_id, actor.id)

    async def purge_material(self, material: Material) -> None:
        """Destroy *material* for good.

        The blob is removed first on a best-effort basis; a storage failure is
        logged and does not stop the purge.  The author's upload counter is
        released (recounted if it would go negative), the material is dropped
        from every favorites list and the author's reputation is recomputed in
        the background.
        """
        try:
            await self.storage_service.delete_file(material.file_path)
        except Exception as exc:
            logger.warning(
                "Could not delete file %s of material %s: %s", material.file_path, material.id, exc
            )

        await self.material_repository.delete(material.id)
        await self.reputation.release_upload(material.author_id)
        removed = await self.user_repository.remove_favorite_everywhere(material.id)
        if removed:
            logger.debug("Material %s removed from %d favorites list(s)", material.id, removed)
        self.dispatcher.recalculate_reputation(material.author_id)
        logger.info("Material %s purged", material.id)

    async def download_material(self, material_id: UUID, user: User) -> tuple[bytes, str, str]:
        material = await self.material_repository.get_by_id(material_id)
        if material is None or not material.is_visible:
            raise NotFoundError("Material not found")

        try:
            content = await self.storage_service.get_file(material.file_path)
        except FileNotFoundError:
            logger.error("File for material %s missing from storage: %s", material.id, material.file_path)
            raise NotFoundError("File not found")

        await self.material_repository.increment_downloads(material.id)
        await self.user_repository.increment_materials_downloaded(user.id)
        self.dispatcher.recalculate_reputation(material.author_id)
        return content, material.mime_type, material.file_name
