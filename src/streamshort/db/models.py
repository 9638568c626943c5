"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Relationships, constraints, and indexes defined here.
Alembic migrations mirror these models.

Key concepts:
- UUID primary keys everywhere (unguessable external ids)
- Generic Uuid/JSON types so the same models run on PostgreSQL and SQLite
- Python-side defaults for timestamps so freshly-flushed rows are readable
  without an extra refresh round-trip in async sessions
"""

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


USER_ROLES = ("user", "creator", "admin")
KYC_STATUSES = ("pending", "verified", "rejected")
PRICE_TYPES = ("free", "subscription", "one_time")
SERIES_STATUSES = ("draft", "published")
EPISODE_STATUSES = ("pending_upload", "queued_transcode", "ready", "published")
UPLOAD_STATUSES = ("pending", "uploading", "completed", "failed")


# ══════════════════════════════════════════════════════════════
# Credentials: users, OTP challenges, refresh tokens
# ══════════════════════════════════════════════════════════════


class User(Base):
    """Identity anchor.

    Learn: Created on first successful OTP verification (phone) or on
    email registration. Identity is immutable; role and is_active are
    not. deleted_at is a soft-delete marker — lookups treat a deleted
    user as absent.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    phone: Mapped[Optional[str]] = mapped_column(String(20), unique=True, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    password_hash: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )  # null for phone-only accounts
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default="user"
    )  # user, creator, admin
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    creator_profile: Mapped[Optional["CreatorProfile"]] = relationship(
        back_populates="user", uselist=False
    )


class OTPTransaction(Base):
    """A one-time code challenge bound to a phone number.

    Learn: Valid only while used = false AND now < expires_at. The
    used flag only ever flips false → true, through a conditional
    UPDATE, so two concurrent verifications can't both win.
    """

    __tablename__ = "otp_transactions"
    __table_args__ = (
        Index("idx_otp_phone_code", "phone", "code"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    txn_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    code: Mapped[str] = mapped_column(String(10), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class RefreshToken(Base):
    """Opaque session-continuation credential (256 random bits, hex).

    State machine: active → revoked (refresh or logout). Expiry is
    checked live against expires_at, no sweeper needed.
    """

    __tablename__ = "refresh_tokens"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


# ══════════════════════════════════════════════════════════════
# Creators and content (ownership chain)
# ══════════════════════════════════════════════════════════════


class CreatorProfile(Base):
    """One per user. The first hop of the ownership chain."""

    __tablename__ = "creator_profiles"
    __table_args__ = (
        CheckConstraint(
            "kyc_status IN ('pending', 'verified', 'rejected')",
            name="ck_creator_profiles_kyc_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), unique=True, nullable=False
    )
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    bio: Mapped[str] = mapped_column(Text, nullable=False, default="")
    kyc_document_s3_path: Mapped[str] = mapped_column(Text, nullable=False)
    kyc_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    user: Mapped["User"] = relationship(back_populates="creator_profile")
    series: Mapped[list["Series"]] = relationship(back_populates="creator")


class CreatorAnalytics(Base):
    """Daily per-creator counters feeding the dashboard."""

    __tablename__ = "creator_analytics"
    __table_args__ = (
        Index("idx_creator_analytics_creator_date", "creator_id", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("creator_profiles.id"), nullable=False
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    watch_time_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    earnings: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False), nullable=False, default=0
    )


class Series(Base):
    """A video series, owned by a creator profile."""

    __tablename__ = "series"
    __table_args__ = (
        CheckConstraint("status IN ('draft', 'published')", name="ck_series_status"),
        Index("idx_series_creator", "creator_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("creator_profiles.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    synopsis: Mapped[str] = mapped_column(Text, nullable=False)
    language: Mapped[str] = mapped_column(String(20), nullable=False)
    category_tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    price_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="free"
    )  # free, subscription, one_time
    price_amount: Mapped[Optional[float]] = mapped_column(
        Numeric(10, 2, asdecimal=False), nullable=True
    )
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    creator: Mapped["CreatorProfile"] = relationship(back_populates="series")
    episodes: Mapped[list["Episode"]] = relationship(
        back_populates="series",
        order_by="Episode.episode_number",
        cascade="all, delete-orphan",
    )


class Episode(Base):
    """A single episode. episode_number is unique within its series."""

    __tablename__ = "episodes"
    __table_args__ = (
        UniqueConstraint("series_id", "episode_number", name="uq_episodes_series_number"),
        CheckConstraint(
            "status IN ('pending_upload', 'queued_transcode', 'ready', 'published')",
            name="ck_episodes_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    series_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("series.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    episode_number: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    thumb_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="pending_upload"
    )
    published_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    series: Mapped["Series"] = relationship(back_populates="episodes")


class UploadRequest(Base):
    """A creator's pending media upload.

    Keyed by the requesting user. The object storage and the transcoder
    only see the id; completion notices are matched on id + user_id.
    """

    __tablename__ = "upload_requests"
    __table_args__ = (
        Index("idx_upload_requests_user", "user_id"),
        CheckConstraint(
            "status IN ('pending', 'uploading', 'completed', 'failed')",
            name="ck_upload_requests_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    meta: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")
    s3_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


# ══════════════════════════════════════════════════════════════
# Audit trail
# ══════════════════════════════════════════════════════════════


class Event(Base):
    """Immutable event log — who did what to which credential or resource.

    Learn: Events are append-only (never updated/deleted).
    stream_id examples: "user:<uuid>", "otp:otp_txn_1a2b3c4d", "series:<uuid>"
    type examples: "otp.requested", "token.refreshed", "episode.status_changed"
    """

    __tablename__ = "events"
    __table_args__ = (
        Index("idx_events_stream", "stream_id", "id"),
        Index("idx_events_type", "type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stream_id: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    data: Mapped[dict] = mapped_column(JSON, nullable=False)
    meta: Mapped[dict] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    # Note: Python attr is "meta" because "metadata" is reserved by SQLAlchemy.
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
