"""Creator service — onboarding, profile management, dashboard.

Learn: Onboarding is the step that turns a plain user into the first
hop of the ownership chain. Every later series/episode check walks
back to the CreatorProfile created here, keyed by the user id taken
from the access token.

A user has at most one profile (unique user_id). Uploading a new KYC
document sends the profile back to "pending" review.
"""

import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from streamshort.clock import Clock, system_clock
from streamshort.db.models import CreatorAnalytics, CreatorProfile, User
from streamshort.errors import ConflictError, ValidationError
from streamshort.events.store import EventStore
from streamshort.events.types import CREATOR_ONBOARDED, CREATOR_UPDATED
from streamshort.services.ownership import OwnershipResolver

logger = structlog.get_logger()

DASHBOARD_WINDOW_DAYS = 30


@dataclass(frozen=True)
class DashboardTotals:
    views: int
    watch_time_seconds: int
    earnings: float


def _required(value: Optional[str], field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field} is required")
    return cleaned


class CreatorService:
    """Business logic for creator profiles."""

    def __init__(self, db: AsyncSession, clock: Clock = system_clock):
        self.db = db
        self.clock = clock
        self.events = EventStore(db)
        self.ownership = OwnershipResolver(db)

    async def onboard(
        self,
        user_id: uuid.UUID,
        display_name: str,
        kyc_document_s3_path: str,
        bio: Optional[str] = None,
    ) -> CreatorProfile:
        display_name = _required(display_name, "display_name")
        kyc_document_s3_path = _required(kyc_document_s3_path, "kyc_document_s3_path")

        existing = await self.db.execute(
            select(CreatorProfile).where(CreatorProfile.user_id == user_id)
        )
        if existing.scalars().first():
            raise ConflictError("Creator profile already exists")

        user = await self.db.get(User, user_id)
        now = self.clock.now()
        profile = CreatorProfile(
            user_id=user_id,
            display_name=display_name,
            bio=bio or "",
            kyc_document_s3_path=kyc_document_s3_path,
            kyc_status="pending",
            created_at=now,
            updated_at=now,
        )
        self.db.add(profile)
        if user is not None and user.role == "user":
            user.role = "creator"
        try:
            await self.db.flush()
        except IntegrityError:
            # Lost a race with a concurrent onboarding of the same user.
            await self.db.rollback()
            raise ConflictError("Creator profile already exists")

        await self.events.append(
            stream_id=f"creator:{profile.id}",
            event_type=CREATOR_ONBOARDED,
            data={"user_id": str(user_id), "display_name": display_name},
        )
        await self.db.commit()

        logger.info("creator.onboarded", creator_id=str(profile.id), user_id=str(user_id))
        return profile

    async def get_profile(self, user_id: uuid.UUID) -> CreatorProfile:
        return await self.ownership.creator_for_user(user_id)

    async def update_profile(
        self,
        user_id: uuid.UUID,
        display_name: Optional[str] = None,
        bio: Optional[str] = None,
        kyc_document_s3_path: Optional[str] = None,
    ) -> CreatorProfile:
        """Partial update. A new KYC document resets kyc_status to pending."""
        profile = await self.ownership.creator_for_user(user_id)
        changed = []

        if display_name is not None:
            profile.display_name = _required(display_name, "display_name")
            changed.append("display_name")
        if bio is not None:
            profile.bio = bio
            changed.append("bio")
        if kyc_document_s3_path is not None:
            profile.kyc_document_s3_path = _required(
                kyc_document_s3_path, "kyc_document_s3_path"
            )
            profile.kyc_status = "pending"
            changed.append("kyc_document_s3_path")

        if changed:
            profile.updated_at = self.clock.now()
            await self.events.append(
                stream_id=f"creator:{profile.id}",
                event_type=CREATOR_UPDATED,
                data={"fields": changed},
            )
            await self.db.commit()
        return profile

    async def dashboard(
        self, creator_id: uuid.UUID, user_id: uuid.UUID
    ) -> DashboardTotals:
        """Sum the last 30 days of analytics. Owner only."""
        profile = await self.ownership.creator_profile(creator_id, user_id)
        since = self.clock.now().date() - timedelta(days=DASHBOARD_WINDOW_DAYS)

        result = await self.db.execute(
            select(
                func.coalesce(func.sum(CreatorAnalytics.views), 0),
                func.coalesce(func.sum(CreatorAnalytics.watch_time_seconds), 0),
                func.coalesce(func.sum(CreatorAnalytics.earnings), 0),
            ).where(
                CreatorAnalytics.creator_id == profile.id,
                CreatorAnalytics.date >= since,
            )
        )
        views, watch_time, earnings = result.one()
        return DashboardTotals(
            views=int(views),
            watch_time_seconds=int(watch_time),
            earnings=round(float(earnings), 2),
        )
