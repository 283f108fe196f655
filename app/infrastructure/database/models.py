"""SQLAlchemy models for the guest selfie matching service."""
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Gallery(Base):
    """Gallery columns the selfie matching flow reads."""

    __tablename__ = "galleries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    selfie_matching_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    access_modes: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Enabled access modes, e.g. GUEST_SELFIE"
    )
    require_mobile_for_selfie: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    photos: Mapped[List["Photo"]] = relationship(
        back_populates="gallery",
        cascade="all, delete-orphan"
    )


class Photo(Base):
    """Gallery photo membership, used to scope provider matches."""

    __tablename__ = "photos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    gallery_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("galleries.id", ondelete="CASCADE"),
        index=True
    )
    filename: Mapped[str] = mapped_column(String(512), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    gallery: Mapped[Gallery] = relationship(back_populates="photos")


class GuestSelfieFace(Base):
    """Cached selfie match result.

    Append only: several rows may share a hash or a mobile number, reads
    pick the most recently used one.
    """

    __tablename__ = "guest_selfie_faces"
    __table_args__ = (
        Index("idx_selfie_faces_gallery_hash", "gallery_id", "image_hash"),
        Index("idx_selfie_faces_gallery_mobile", "gallery_id", "mobile_number"),
        Index("idx_selfie_faces_gallery_session", "gallery_id", "guest_session_token"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    gallery_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("galleries.id", ondelete="CASCADE"),
        nullable=False
    )
    image_hash: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="Average hash of the normalized selfie"
    )
    mobile_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    guest_session_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    face_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Provider face id or no-match-<timestamp>"
    )
    matched_photo_ids: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    selfie_s3_key: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    last_used_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class SelfieRateLimitAttempt(Base):
    """A single selfie attempt inside the sliding rate limit window."""

    __tablename__ = "selfie_rate_limit_attempts"
    __table_args__ = (
        Index("idx_rate_limit_key_time", "identity_key", "attempted_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    gallery_id: Mapped[str] = mapped_column(String(36), nullable=False)
    identity_key: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="<gallery>:m:<mobile> or <gallery>:s:<token>"
    )
    attempted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Guest(Base):
    """Guest session issued after a selfie match."""

    __tablename__ = "guests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    gallery_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("galleries.id", ondelete="CASCADE"),
        index=True
    )
    session_token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, default=new_id)
    mobile_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    matched_photo_ids: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    selfie_s3_key: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
