"""Content service — series and episodes.

Learn: Every mutating method takes the requesting user's id and goes
through OwnershipResolver first. The resolver returns the row only
when the chain user → creator profile → series (→ episode) holds, so
by the time we touch a field the caller is known to own it.

Status machines:

    Series:  draft <──> published
    Episode: pending_upload → queued_transcode → ready → published
             (any allowed value may be set directly; the transcode
             pipeline that would normally drive it is out of scope)

published_at records the most recent move into "published" and is
never cleared.

Public reads (browse, detail) see published series only, and the
detail view lists only published episodes.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import String, cast, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from streamshort.clock import Clock, system_clock
from streamshort.db.models import PRICE_TYPES, Episode, Series
from streamshort.errors import ConflictError, NotFoundError, ValidationError
from streamshort.events.store import EventStore
from streamshort.events.types import (
    EPISODE_CREATED,
    EPISODE_DELETED,
    EPISODE_STATUS_CHANGED,
    EPISODE_UPDATED,
    SERIES_CREATED,
    SERIES_STATUS_CHANGED,
    SERIES_UPDATED,
)
from streamshort.services.ownership import (
    PUBLISHED,
    OwnershipResolver,
    apply_episode_status,
    normalize_episode_status,
    normalize_series_status,
)

logger = structlog.get_logger()

MAX_PER_PAGE = 100


@dataclass(frozen=True)
class SeriesPage:
    total: int
    items: list[Series]


def _required(value: Optional[str], field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field} is required")
    return cleaned


def _positive(value: Optional[int], field: str) -> int:
    if value is None or value <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    return value


def _check_price(price_type: str, price_amount: Optional[float]) -> None:
    if price_type not in PRICE_TYPES:
        raise ValidationError(
            f"invalid price_type '{price_type}'. Allowed: {', '.join(PRICE_TYPES)}"
        )
    if price_amount is not None and price_amount < 0:
        raise ValidationError("price_amount must not be negative")


class ContentService:
    """Business logic for series and episodes."""

    def __init__(self, db: AsyncSession, clock: Clock = system_clock):
        self.db = db
        self.clock = clock
        self.events = EventStore(db)
        self.ownership = OwnershipResolver(db)

    # ─── Series ─────────────────────────────────────────

    async def create_series(
        self,
        user_id: uuid.UUID,
        title: str,
        synopsis: str,
        language: str,
        category_tags: Optional[list[str]] = None,
        price_type: str = "free",
        price_amount: Optional[float] = None,
        thumbnail_url: Optional[str] = None,
    ) -> Series:
        """Create a draft series under the caller's creator profile."""
        creator = await self.ownership.creator_for_user(user_id)

        title = _required(title, "title")
        synopsis = _required(synopsis, "synopsis")
        language = _required(language, "language")
        _check_price(price_type, price_amount)

        now = self.clock.now()
        series = Series(
            creator_id=creator.id,
            title=title,
            synopsis=synopsis,
            language=language,
            category_tags=list(category_tags or []),
            price_type=price_type,
            price_amount=price_amount,
            thumbnail_url=thumbnail_url,
            status="draft",
            created_at=now,
            updated_at=now,
        )
        self.db.add(series)
        await self.db.flush()

        await self.events.append(
            stream_id=f"series:{series.id}",
            event_type=SERIES_CREATED,
            data={"creator_id": str(creator.id), "title": title},
        )
        await self.db.commit()

        logger.info("series.created", series_id=str(series.id), creator_id=str(creator.id))
        return series

    async def update_series(
        self, series_id: uuid.UUID, user_id: uuid.UUID, **fields
    ) -> Series:
        """Partial update. Fields left as None are not touched."""
        series = await self.ownership.series(series_id, user_id)
        changes = {k: v for k, v in fields.items() if v is not None}

        for name in ("title", "synopsis", "language"):
            if name in changes:
                changes[name] = _required(changes[name], name)
        if "status" in changes:
            changes["status"] = normalize_series_status(changes["status"])
        if "price_type" in changes or "price_amount" in changes:
            _check_price(
                changes.get("price_type", series.price_type),
                changes.get("price_amount", series.price_amount),
            )
        if "category_tags" in changes:
            changes["category_tags"] = list(changes["category_tags"])

        for name, value in changes.items():
            setattr(series, name, value)

        if changes:
            series.updated_at = self.clock.now()
            await self.events.append(
                stream_id=f"series:{series.id}",
                event_type=SERIES_UPDATED,
                data={"fields": sorted(changes)},
            )
            await self.db.commit()
        return series

    async def update_series_status(
        self, series_id: uuid.UUID, user_id: uuid.UUID, status: str
    ) -> Series:
        series = await self.ownership.series(series_id, user_id)
        new_status = normalize_series_status(status)
        old_status = series.status

        series.status = new_status
        series.updated_at = self.clock.now()

        await self.events.append(
            stream_id=f"series:{series.id}",
            event_type=SERIES_STATUS_CHANGED,
            data={"from": old_status, "to": new_status},
        )
        await self.db.commit()

        logger.info(
            "series.status_changed",
            series_id=str(series.id),
            old=old_status,
            new=new_status,
        )
        return series

    async def list_published_series(
        self,
        language: Optional[str] = None,
        category: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> SeriesPage:
        """Public catalogue: published series, newest first."""
        page = max(page, 1)
        per_page = min(max(per_page, 1), MAX_PER_PAGE)

        query = select(Series).where(Series.status == PUBLISHED)
        if language:
            query = query.where(Series.language == language)
        if category:
            # category_tags is a JSON list; match the quoted element in its text form.
            query = query.where(
                cast(Series.category_tags, String).contains(f'"{category}"', autoescape=True)
            )

        total = (
            await self.db.execute(select(func.count()).select_from(query.subquery()))
        ).scalar_one()

        result = await self.db.execute(
            query.order_by(Series.created_at.desc(), Series.id)
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        return SeriesPage(total=total, items=list(result.scalars().all()))

    async def get_published_series(self, series_id: uuid.UUID) -> Series:
        """Public detail view with published episodes only."""
        result = await self.db.execute(
            select(Series).where(Series.id == series_id, Series.status == PUBLISHED)
        )
        series = result.scalars().first()
        if series is None:
            raise NotFoundError("Series not found")
        return series

    async def list_published_episodes(self, series_id: uuid.UUID) -> list[Episode]:
        result = await self.db.execute(
            select(Episode)
            .where(Episode.series_id == series_id, Episode.status == PUBLISHED)
            .order_by(Episode.episode_number)
        )
        return list(result.scalars().all())

    async def list_creator_content(self, user_id: uuid.UUID) -> list[Series]:
        """Everything the caller's creator profile owns, drafts included."""
        creator = await self.ownership.creator_for_user(user_id)
        result = await self.db.execute(
            select(Series)
            .where(Series.creator_id == creator.id)
            .options(selectinload(Series.episodes))
            .order_by(Series.created_at.desc(), Series.id)
        )
        return list(result.scalars().all())

    # ─── Episodes ───────────────────────────────────────

    async def create_episode(
        self,
        series_id: uuid.UUID,
        user_id: uuid.UUID,
        title: str,
        episode_number: int,
        duration_seconds: int,
        thumb_url: Optional[str] = None,
    ) -> Episode:
        series = await self.ownership.series(series_id, user_id)

        title = _required(title, "title")
        episode_number = _positive(episode_number, "episode_number")
        duration_seconds = _positive(duration_seconds, "duration_seconds")
        await self.ownership.ensure_episode_number_free(series.id, episode_number)

        now = self.clock.now()
        episode = Episode(
            series_id=series.id,
            title=title,
            episode_number=episode_number,
            duration_seconds=duration_seconds,
            thumb_url=thumb_url,
            status="pending_upload",
            created_at=now,
            updated_at=now,
        )
        self.db.add(episode)
        await self._flush_episode()

        await self.events.append(
            stream_id=f"series:{series.id}",
            event_type=EPISODE_CREATED,
            data={"episode_id": str(episode.id), "episode_number": episode_number},
        )
        await self.db.commit()

        logger.info(
            "episode.created",
            episode_id=str(episode.id),
            series_id=str(series.id),
            episode_number=episode_number,
        )
        return episode

    async def update_episode(
        self,
        episode_id: uuid.UUID,
        user_id: uuid.UUID,
        title: Optional[str] = None,
        episode_number: Optional[int] = None,
        duration_seconds: Optional[int] = None,
        thumb_url: Optional[str] = None,
    ) -> Episode:
        episode = await self.ownership.episode(episode_id, user_id)
        changed = []

        if title is not None:
            episode.title = _required(title, "title")
            changed.append("title")
        if episode_number is not None:
            episode_number = _positive(episode_number, "episode_number")
            await self.ownership.ensure_episode_number_free(
                episode.series_id, episode_number, exclude_episode_id=episode.id
            )
            episode.episode_number = episode_number
            changed.append("episode_number")
        if duration_seconds is not None:
            episode.duration_seconds = _positive(duration_seconds, "duration_seconds")
            changed.append("duration_seconds")
        if thumb_url is not None:
            episode.thumb_url = thumb_url
            changed.append("thumb_url")

        if changed:
            episode.updated_at = self.clock.now()
            await self._flush_episode()
            await self.events.append(
                stream_id=f"series:{episode.series_id}",
                event_type=EPISODE_UPDATED,
                data={"episode_id": str(episode.id), "fields": changed},
            )
            await self.db.commit()
        return episode

    async def update_episode_status(
        self, episode_id: uuid.UUID, user_id: uuid.UUID, status: str
    ) -> Episode:
        episode = await self.ownership.episode(episode_id, user_id)
        new_status = normalize_episode_status(status)
        old_status = episode.status

        apply_episode_status(episode, new_status, self.clock.now())

        await self.events.append(
            stream_id=f"series:{episode.series_id}",
            event_type=EPISODE_STATUS_CHANGED,
            data={"episode_id": str(episode.id), "from": old_status, "to": new_status},
        )
        await self.db.commit()

        logger.info(
            "episode.status_changed",
            episode_id=str(episode.id),
            old=old_status,
            new=new_status,
        )
        return episode

    async def delete_episode(self, episode_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Hard delete. The audit event keeps the record of what existed."""
        episode = await self.ownership.episode(episode_id, user_id)
        series_id = episode.series_id

        await self.db.delete(episode)
        await self.events.append(
            stream_id=f"series:{series_id}",
            event_type=EPISODE_DELETED,
            data={
                "episode_id": str(episode.id),
                "episode_number": episode.episode_number,
            },
        )
        await self.db.commit()

        logger.info("episode.deleted", episode_id=str(episode.id), series_id=str(series_id))

    async def _flush_episode(self) -> None:
        # Two requests racing for the same number both pass the pre-check;
        # the unique constraint decides.
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Episode number already exists for this series")
