"""Content API routes: series, episodes and media uploads.

Learn: Two routers share the /content prefix:
- catalog_router: public browsing (published series only), mounted open
- router: everything that creates or changes content, mounted behind
  get_current_user at include_router level

Mutations pass identity.user_id to the service, which resolves the
ownership chain before touching anything. A series or episode that
doesn't exist and one that belongs to another creator both come back
as the same 404.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from streamshort.auth.dependencies import CurrentIdentity, get_current_user
from streamshort.clock import Clock, get_clock
from streamshort.db.engine import get_db
from streamshort.schemas.content import (
    EpisodeCreate,
    EpisodeRead,
    EpisodeStatusRead,
    EpisodeUpdate,
    SeriesCreate,
    SeriesDetail,
    SeriesList,
    SeriesRead,
    SeriesStatusRead,
    SeriesUpdate,
    StatusUpdate,
    UploadNotify,
    UploadNotifyRead,
    UploadUrlRead,
    UploadUrlRequest,
)
from streamshort.services.content_service import MAX_PER_PAGE, ContentService
from streamshort.services.upload_service import UploadService
from streamshort.storage.uploads import (
    TranscodeQueue,
    UploadStorage,
    get_transcode_queue,
    get_upload_storage,
)

catalog_router = APIRouter(prefix="/content")
router = APIRouter(prefix="/content")


def _svc(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> ContentService:
    return ContentService(db, clock)


def _uploads(
    db: AsyncSession = Depends(get_db),
    storage: UploadStorage = Depends(get_upload_storage),
    transcoder: TranscodeQueue = Depends(get_transcode_queue),
    clock: Clock = Depends(get_clock),
) -> UploadService:
    return UploadService(db, storage, transcoder, clock)


# ─── Public catalog ─────────────────────────────────────

@catalog_router.get("/series", response_model=SeriesList)
async def list_series(
    language: Optional[str] = None,
    category: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=MAX_PER_PAGE),
    svc: ContentService = Depends(_svc),
):
    result = await svc.list_published_series(
        language=language, category=category, page=page, per_page=per_page
    )
    return SeriesList(
        total=result.total,
        items=[SeriesRead.model_validate(s) for s in result.items],
    )


@catalog_router.get("/series/{series_id}", response_model=SeriesDetail)
async def get_series(series_id: uuid.UUID, svc: ContentService = Depends(_svc)):
    """Published series with its published episodes."""
    series = await svc.get_published_series(series_id)
    episodes = await svc.list_published_episodes(series.id)
    return SeriesDetail(
        **SeriesRead.model_validate(series).model_dump(),
        episodes=[EpisodeRead.model_validate(e) for e in episodes],
    )


# ─── Series (owner) ─────────────────────────────────────

@router.post("/series", response_model=SeriesRead, status_code=201)
async def create_series(
    body: SeriesCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ContentService = Depends(_svc),
):
    """Create a draft series. The caller must be an onboarded creator."""
    return await svc.create_series(
        identity.user_id,
        title=body.title,
        synopsis=body.synopsis,
        language=body.language,
        category_tags=body.category_tags,
        price_type=body.price_type,
        price_amount=body.price_amount,
        thumbnail_url=body.thumbnail_url,
    )


@router.put("/series/{series_id}", response_model=SeriesRead)
async def update_series(
    series_id: uuid.UUID,
    body: SeriesUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ContentService = Depends(_svc),
):
    return await svc.update_series(
        series_id, identity.user_id, **body.model_dump(exclude_unset=True)
    )


@router.post("/series/{series_id}/status", response_model=SeriesStatusRead)
async def update_series_status(
    series_id: uuid.UUID,
    body: StatusUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ContentService = Depends(_svc),
):
    return await svc.update_series_status(series_id, identity.user_id, body.status)


@router.get("/mine", response_model=list[SeriesDetail])
async def my_content(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ContentService = Depends(_svc),
):
    """All of the caller's series, drafts included, with every episode."""
    return await svc.list_creator_content(identity.user_id)


# ─── Episodes (owner) ───────────────────────────────────

@router.post(
    "/series/{series_id}/episodes", response_model=EpisodeRead, status_code=201
)
async def create_episode(
    series_id: uuid.UUID,
    body: EpisodeCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ContentService = Depends(_svc),
):
    return await svc.create_episode(
        series_id,
        identity.user_id,
        title=body.title,
        episode_number=body.episode_number,
        duration_seconds=body.duration_seconds,
        thumb_url=body.thumb_url,
    )


@router.put("/episodes/{episode_id}", response_model=EpisodeRead)
async def update_episode(
    episode_id: uuid.UUID,
    body: EpisodeUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ContentService = Depends(_svc),
):
    return await svc.update_episode(
        episode_id,
        identity.user_id,
        title=body.title,
        episode_number=body.episode_number,
        duration_seconds=body.duration_seconds,
        thumb_url=body.thumb_url,
    )


@router.post("/episodes/{episode_id}/status", response_model=EpisodeStatusRead)
async def update_episode_status(
    episode_id: uuid.UUID,
    body: StatusUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ContentService = Depends(_svc),
):
    """Move an episode through pending_upload/queued_transcode/ready/published."""
    return await svc.update_episode_status(episode_id, identity.user_id, body.status)


@router.delete("/episodes/{episode_id}")
async def delete_episode(
    episode_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ContentService = Depends(_svc),
):
    await svc.delete_episode(episode_id, identity.user_id)
    return {"deleted": True}


# ─── Uploads (creator) ──────────────────────────────────

@router.post("/upload-url", response_model=UploadUrlRead)
async def request_upload_url(
    body: UploadUrlRequest,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: UploadService = Depends(_uploads),
):
    """Presigned URL for a direct upload to object storage. Creators only."""
    upload, presigned = await svc.request_upload(
        identity.user_id,
        filename=body.filename,
        content_type=body.content_type,
        size_bytes=body.size_bytes,
        metadata=body.metadata,
    )
    return UploadUrlRead(
        upload_id=upload.id,
        presigned_url=presigned.url,
        expires_in=presigned.expires_in,
        upload_headers=presigned.headers,
    )


@router.post(
    "/uploads/{upload_id}/notify", response_model=UploadNotifyRead, status_code=202
)
async def notify_upload_complete(
    upload_id: uuid.UUID,
    body: UploadNotify,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: UploadService = Depends(_uploads),
):
    upload = await svc.complete_upload(
        upload_id, identity.user_id, s3_path=body.s3_path, size_bytes=body.size_bytes
    )
    return UploadNotifyRead(upload_id=upload.id, status="queued_for_transcoding")
