"""Ownership resolver — who may touch which creator, series, or episode.

Learn: Authorization here is a chain walk, never a shortcut:

    requesting user ─► creator_profiles.user_id
                         ▲
    series.creator_id ───┘
                         ▲
    episodes.series_id ──┘ (through series)

Each check is a single JOIN query filtered by BOTH the resource id and
the requesting user's id. The requester's identity always comes from
the verified access token; a creator id in the request body or path
is only ever used as a lookup key, never as proof of ownership.

When the walk fails we raise NotFoundOrDenied, rendered as a 404
identical to "doesn't exist". Someone probing ids learns nothing about
other creators' content.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from streamshort.db.models import (
    EPISODE_STATUSES,
    SERIES_STATUSES,
    CreatorProfile,
    Episode,
    Series,
    UploadRequest,
)
from streamshort.errors import ConflictError, Forbidden, NotFoundOrDenied, ValidationError

PUBLISHED = "published"

_STATUS_ALIASES = {"publish": PUBLISHED}


def _normalize_status(value: Optional[str], allowed: tuple[str, ...]) -> str:
    status = (value or "").strip().lower()
    if not status:
        raise ValidationError("status is required")
    status = _STATUS_ALIASES.get(status, status)
    if status not in allowed:
        raise ValidationError(
            f"invalid status '{value}'. Allowed: {', '.join(allowed)}"
        )
    return status


def normalize_episode_status(value: Optional[str]) -> str:
    return _normalize_status(value, EPISODE_STATUSES)


def normalize_series_status(value: Optional[str]) -> str:
    return _normalize_status(value, SERIES_STATUSES)


def apply_episode_status(episode: Episode, status: str, now: datetime) -> None:
    """Set status; entering 'published' stamps published_at.

    Leaving 'published' keeps the old timestamp: published_at records
    the most recent publication, not the current state.
    """
    episode.status = status
    if status == PUBLISHED:
        episode.published_at = now
    episode.updated_at = now


class OwnershipResolver:
    """Resolves resources through the ownership chain for one user."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def creator_for_user(self, user_id: uuid.UUID) -> CreatorProfile:
        """The caller's own creator profile, or 403 if they never onboarded."""
        result = await self.db.execute(
            select(CreatorProfile).where(CreatorProfile.user_id == user_id)
        )
        profile = result.scalars().first()
        if profile is None:
            raise Forbidden("User must be onboarded as a creator first")
        return profile

    async def creator_profile(
        self, creator_id: uuid.UUID, user_id: uuid.UUID
    ) -> CreatorProfile:
        result = await self.db.execute(
            select(CreatorProfile).where(
                CreatorProfile.id == creator_id,
                CreatorProfile.user_id == user_id,
            )
        )
        profile = result.scalars().first()
        if profile is None:
            raise NotFoundOrDenied("Creator profile not found or access denied")
        return profile

    async def series(self, series_id: uuid.UUID, user_id: uuid.UUID) -> Series:
        result = await self.db.execute(
            select(Series)
            .join(CreatorProfile, Series.creator_id == CreatorProfile.id)
            .where(Series.id == series_id, CreatorProfile.user_id == user_id)
        )
        series = result.scalars().first()
        if series is None:
            raise NotFoundOrDenied("Series not found or access denied")
        return series

    async def episode(self, episode_id: uuid.UUID, user_id: uuid.UUID) -> Episode:
        result = await self.db.execute(
            select(Episode)
            .join(Series, Episode.series_id == Series.id)
            .join(CreatorProfile, Series.creator_id == CreatorProfile.id)
            .where(Episode.id == episode_id, CreatorProfile.user_id == user_id)
        )
        episode = result.scalars().first()
        if episode is None:
            raise NotFoundOrDenied("Episode not found or access denied")
        return episode

    async def upload(self, upload_id: uuid.UUID, user_id: uuid.UUID) -> UploadRequest:
        """Uploads hang off the user directly, not the creator profile."""
        result = await self.db.execute(
            select(UploadRequest).where(
                UploadRequest.id == upload_id,
                UploadRequest.user_id == user_id,
            )
        )
        upload = result.scalars().first()
        if upload is None:
            raise NotFoundOrDenied("Upload not found or access denied")
        return upload

    async def ensure_episode_number_free(
        self,
        series_id: uuid.UUID,
        episode_number: int,
        exclude_episode_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Raise ConflictError if another episode in the series has this number."""
        query = select(func.count(Episode.id)).where(
            Episode.series_id == series_id,
            Episode.episode_number == episode_number,
        )
        if exclude_episode_id is not None:
            query = query.where(Episode.id != exclude_episode_id)
        count = (await self.db.execute(query)).scalar_one()
        if count > 0:
            raise ConflictError("Episode number already exists for this series")
