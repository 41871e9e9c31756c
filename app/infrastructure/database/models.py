"""SQLAlchemy database models."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class UserModel(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    role = Column(String(20), nullable=False, default="student", server_default="student", index=True)
    avatar = Column(String(512), nullable=True)
    reputation = Column(Float, default=0.0, nullable=False)
    materials_uploaded = Column(Integer, default=0, nullable=False)
    materials_downloaded = Column(Integer, default=0, nullable=False)
    favorites = Column(ARRAY(UUID(as_uuid=True)), default=list, server_default="{}", nullable=False)
    notify_rating = Column(Boolean, default=True, nullable=False)
    notify_comment_on_my_material = Column(Boolean, default=True, nullable=False)
    notify_comment_on_favorite = Column(Boolean, default=True, nullable=False)
    notify_report = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class MaterialModel(Base):
    """Material aggregate row.

    Ratings, comments (with their likes/dislikes/reports) and material-level
    reports are embedded JSONB documents saved together with the row.
    ``version`` guards whole-row saves; ``views`` and ``downloads`` are only
    ever changed by in-place increments.
    """

    __tablename__ = "materials"
    __table_args__ = (
        Index("ix_materials_listing", "is_active", "is_approved", "created_at"),
        Index("ix_materials_author", "author_id", "is_active"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    author_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    discipline = Column(String(200), nullable=False, index=True)
    course = Column(String(200), nullable=True)
    year = Column(Integer, nullable=False)
    material_type = Column(String(100), nullable=False)
    tags = Column(ARRAY(String), default=list, server_default="{}", nullable=False)
    file_path = Column(String(512), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String(100), nullable=False)
    rating_average = Column(Float, default=0.0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)
    rating_breakdown = Column(JSONB, default=lambda: [0, 0, 0, 0, 0], nullable=False)  # index = stars - 1
    user_ratings = Column(JSONB, default=list, nullable=False)
    comments = Column(JSONB, default=list, nullable=False)
    reports = Column(JSONB, default=list, nullable=False)
    views = Column(Integer, default=0, nullable=False)
    downloads = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_approved = Column(Boolean, default=True, nullable=False)
    version = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class ReportIndexModel(Base):
    """Report id → owning material (and comment, for comment reports).

    Rewritten in the same transaction as every material save.
    """

    __tablename__ = "report_index"

    report_id = Column(UUID(as_uuid=True), primary_key=True)
    material_id = Column(
        UUID(as_uuid=True), ForeignKey("materials.id", ondelete="CASCADE"), nullable=False, index=True
    )
    comment_id = Column(UUID(as_uuid=True), nullable=True)


class NotificationModel(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_inbox", "recipient_id", "is_read", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    recipient_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(20), nullable=False)  # comment|rating|favorite|report
    material_id = Column(
        UUID(as_uuid=True), ForeignKey("materials.id", ondelete="CASCADE"), nullable=False
    )
    actor_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    extra = Column("metadata", JSONB, default=dict, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
