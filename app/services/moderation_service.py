"""Moderation ledger: comments, reactions, reports and their resolution."""

import logging
from uuid import UUID, uuid4

from app.domain.entities import ROLE_ADMIN, Comment, Material, MaterialQuery, Report, ReportEntry, User
from app.domain.exceptions import (
    AuthorizationError,
    DuplicateReportError,
    NotFoundError,
    ValidationError,
)
from app.domain.repositories import IMaterialRepository, IUserRepository
from app.domain.services import IBackgroundDispatcher, IMaterialService, IModerationService
from app.services.aggregate import DEFAULT_ATTEMPTS, mutate_material
from app.services.events import COMMENT_ADDED, comment_payload, material_room

logger = logging.getLogger(__name__)

COMMENT_MAX_LENGTH = 1000
REPORT_REASON_MIN_LENGTH = 10
REPORT_REASON_MAX_LENGTH = 500
COMMENT_EXCERPT_LENGTH = 100

REACTIONS = ("like", "dislike")
RESOLUTION_ACTIONS = ("delete", "ignore")


def _validate_reason(reason: str) -> str:
    cleaned = (reason or "").strip()
    if not REPORT_REASON_MIN_LENGTH <= len(cleaned) <= REPORT_REASON_MAX_LENGTH:
        raise ValidationError(
            f"Report reason must be between {REPORT_REASON_MIN_LENGTH} "
            f"and {REPORT_REASON_MAX_LENGTH} characters"
        )
    return cleaned


def _require_admin(actor: User) -> None:
    if actor.role != ROLE_ADMIN:
        raise AuthorizationError("Administrator access required")


class ModerationService(IModerationService):
    """Owns every moderation-relevant mutation of the Material aggregate."""

    def __init__(
        self,
        material_repository: IMaterialRepository,
        user_repository: IUserRepository,
        material_service: IMaterialService,
        dispatcher: IBackgroundDispatcher,
        save_attempts: int = DEFAULT_ATTEMPTS,
    ):
        self.material_repository = material_repository
        self.user_repository = user_repository
        self.material_service = material_service
        self.dispatcher = dispatcher
        self.save_attempts = save_attempts

    # -----------------------------------------------------------------------
    # Comments
    # -----------------------------------------------------------------------

    async def add_comment(self, material_id: UUID, user: User, text: str) -> Comment:
        cleaned = (text or "").strip()
        if not cleaned:
            raise ValidationError("Comment cannot be empty")
        if len(cleaned) > COMMENT_MAX_LENGTH:
            raise ValidationError(f"Comment cannot exceed {COMMENT_MAX_LENGTH} characters")

        def apply(material: Material) -> Comment:
            comment = Comment(id=uuid4(), author_id=user.id, text=cleaned)
            material.comments.append(comment)
            return comment

        material, comment = await mutate_material(
            self.material_repository, material_id, apply, attempts=self.save_attempts
        )
        logger.info("Comment %s added by user %s on material %s", comment.id, user.id, material_id)

        self.dispatcher.publish(
            material_room(material.id), COMMENT_ADDED, comment_payload(comment, author=user)
        )
        self.dispatcher.notify("comment", material.id, user.id, {"comment_text": cleaned})
        return comment

    async def toggle_comment_reaction(
        self, material_id: UUID, comment_id: UUID, user: User, kind: str
    ) -> Comment:
        """Toggle a like/dislike; the two are mutually exclusive per user.

        Repeating the same reaction undoes it, so calling twice restores the
        previous state.
        """
        if kind not in REACTIONS:
            raise ValidationError("Reaction must be 'like' or 'dislike'")

        def apply(material: Material) -> Comment:
            comment = material.find_comment(comment_id)
            if comment is None:
                raise NotFoundError("Comment not found")
            chosen, opposite = (
                (comment.likes, comment.dislikes) if kind == "like" else (comment.dislikes, comment.likes)
            )
            if user.id in chosen:
                chosen.remove(user.id)
            else:
                chosen.append(user.id)
                if user.id in opposite:
                    opposite.remove(user.id)
            return comment

        _, comment = await mutate_material(
            self.material_repository, material_id, apply, attempts=self.save_attempts
        )
        logger.debug(
            "User %s toggled %s on comment %s (likes=%d, dislikes=%d)",
            user.id, kind, comment_id, len(comment.likes), len(comment.dislikes),
        )
        return comment

    # -----------------------------------------------------------------------
    # Reports
    # -----------------------------------------------------------------------

    async def report_material(self, material_id: UUID, reporter: User, reason: str) -> None:
        cleaned = _validate_reason(reason)

        def apply(material: Material) -> Report:
            # Reporting is allowed on unapproved materials, not on removed ones.
            if not material.is_active:
                raise NotFoundError("Material not found")
            if any(r.reporter_id == reporter.id for r in material.reports):
                raise DuplicateReportError("You have already reported this material")
            report = Report(id=uuid4(), reporter_id=reporter.id, reason=cleaned)
            material.reports.append(report)
            return report

        material, report = await mutate_material(
            self.material_repository,
            material_id,
            apply,
            require_visible=False,
            attempts=self.save_attempts,
        )
        logger.info("Material %s reported by user %s (report %s)", material_id, reporter.id, report.id)
        self.dispatcher.notify(
            "report", material.id, reporter.id, {"target": "material", "reason": cleaned}
        )

    async def report_comment(
        self, material_id: UUID, comment_id: UUID, reporter: User, reason: str
    ) -> None:
        cleaned = _validate_reason(reason)

        def apply(material: Material) -> Report:
            comment = material.find_comment(comment_id)
            if comment is None:
                raise NotFoundError("Comment not found")
            if any(r.reporter_id == reporter.id for r in comment.reports):
                raise DuplicateReportError("You have already reported this comment")
            report = Report(id=uuid4(), reporter_id=reporter.id, reason=cleaned)
            comment.reports.append(report)
            return report

        material, report = await mutate_material(
            self.material_repository, material_id, apply, attempts=self.save_attempts
        )
        logger.info(
            "Comment %s on material %s reported by user %s (report %s)",
            comment_id, material_id, reporter.id, report.id,
        )
        self.dispatcher.notify(
            "report",
            material.id,
            reporter.id,
            {"target": "comment", "comment_id": str(comment_id), "reason": cleaned},
        )

    async def resolve_report(self, report_id: UUID, action: str, actor: User) -> str:
        """Resolve a report by id, whichever scope it lives in.

        ``ignore`` drops only that report entry.  ``delete`` on a material
        report destroys the material; on a comment report it removes only
        the comment.  Returns ``material_deleted``, ``comment_deleted`` or
        ``report_dismissed``.
        """
        _require_admin(actor)
        if action not in RESOLUTION_ACTIONS:
            raise ValidationError("Action must be 'delete' or 'ignore'")

        location = await self.material_repository.find_report(report_id)
        if location is None:
            raise NotFoundError("Report not found")

        if location.comment_id is None:
            if action == "delete":
                material = await self.material_repository.get_by_id(location.material_id)
                if material is None:
                    raise NotFoundError("Report not found")
                await self.material_service.purge_material(material)
                logger.info("Report %s resolved by %s: material %s deleted", report_id, actor.id, material.id)
                return "material_deleted"

            def dismiss_material_report(material: Material) -> None:
                remaining = [r for r in material.reports if r.id != report_id]
                if len(remaining) == len(material.reports):
                    raise NotFoundError("Report not found")
                material.reports = remaining

            await mutate_material(
                self.material_repository,
                location.material_id,
                dismiss_material_report,
                require_visible=False,
                attempts=self.save_attempts,
            )
            logger.info("Report %s on material %s dismissed by %s", report_id, location.material_id, actor.id)
            return "report_dismissed"

        comment_id = location.comment_id

        def resolve_comment_report(material: Material) -> None:
            comment = material.find_comment(comment_id)
            if comment is None or not any(r.id == report_id for r in comment.reports):
                raise NotFoundError("Report not found")
            if action == "delete":
                material.comments = [c for c in material.comments if c.id != comment_id]
            else:
                comment.reports = [r for r in comment.reports if r.id != report_id]

        await mutate_material(
            self.material_repository,
            location.material_id,
            resolve_comment_report,
            require_visible=False,
            attempts=self.save_attempts,
        )
        if action == "delete":
            logger.info("Report %s resolved by %s: comment %s deleted", report_id, actor.id, comment_id)
            return "comment_deleted"
        logger.info("Report %s on comment %s dismissed by %s", report_id, comment_id, actor.id)
        return "report_dismissed"

    async def list_reports(
        self, actor: User, skip: int = 0, limit: int = 20
    ) -> tuple[list[ReportEntry], int]:
        """Merged material + comment report feed, newest first."""
        _require_admin(actor)
        entries = self._collect_reports(await self.material_repository.list_with_reports())

        reporters = await self.user_repository.get_many(list({e.reporter_id for e in entries}))
        for entry in entries:
            entry.reporter = reporters.get(entry.reporter_id)

        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries[skip : skip + limit], len(entries)

    async def moderation_stats(self, actor: User) -> dict:
        _require_admin(actor)
        total_users = await self.user_repository.count()
        total_admins = await self.user_repository.count(role=ROLE_ADMIN)
        total_materials = await self.material_repository.count(MaterialQuery())
        entries = self._collect_reports(await self.material_repository.list_with_reports())
        return {
            "total_users": total_users,
            "total_admins": total_admins,
            "total_students": total_users - total_admins,
            "total_materials": total_materials,
            "total_reports": len(entries),
            "pending_reports": sum(1 for e in entries if e.status == "pending"),
        }

    @staticmethod
    def _collect_reports(materials: list[Material]) -> list[ReportEntry]:
        entries: list[ReportEntry] = []
        for material in materials:
            status = "pending" if material.is_active else "resolved"
            for report in material.reports:
                entries.append(
                    ReportEntry(
                        id=report.id,
                        kind="material",
                        material_id=material.id,
                        material_title=material.title,
                        material_author_id=material.author_id,
                        reporter_id=report.reporter_id,
                        reason=report.reason,
                        created_at=report.created_at,
                        status=status,
                    )
                )
            for comment in material.comments:
                for report in comment.reports:
                    entries.append(
                        ReportEntry(
                            id=report.id,
                            kind="comment",
                            material_id=material.id,
                            material_title=material.title,
                            material_author_id=material.author_id,
                            reporter_id=report.reporter_id,
                            reason=report.reason,
                            created_at=report.created_at,
                            status=status,
                            comment_id=comment.id,
                            comment_excerpt=comment.text[:COMMENT_EXCERPT_LENGTH],
                            comment_author_id=comment.author_id,
                        )
                    )
        return entries
