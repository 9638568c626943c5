"""Creator API routes.

Learn: Every route here is protected at include_router level. The
creator a request acts on is always derived from the token's user id;
the {creator_id} in the dashboard path is a lookup key checked
against the caller, never trusted on its own.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from streamshort.auth.dependencies import CurrentIdentity, get_current_user
from streamshort.clock import Clock, get_clock
from streamshort.db.engine import get_db
from streamshort.schemas.creator import (
    CreatorOnboard,
    CreatorRead,
    CreatorUpdate,
    DashboardRead,
)
from streamshort.services.creator_service import CreatorService

router = APIRouter(prefix="/creators")


def _svc(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> CreatorService:
    return CreatorService(db, clock)


@router.post("/onboard", response_model=CreatorRead, status_code=201)
async def onboard(
    body: CreatorOnboard,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: CreatorService = Depends(_svc),
):
    """Create the caller's creator profile (one per user)."""
    return await svc.onboard(
        user_id=identity.user_id,
        display_name=body.display_name,
        kyc_document_s3_path=body.kyc_document_s3_path,
        bio=body.bio,
    )


@router.get("/profile", response_model=CreatorRead)
async def get_profile(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: CreatorService = Depends(_svc),
):
    return await svc.get_profile(identity.user_id)


@router.put("/profile", response_model=CreatorRead)
async def update_profile(
    body: CreatorUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: CreatorService = Depends(_svc),
):
    return await svc.update_profile(
        identity.user_id,
        display_name=body.display_name,
        bio=body.bio,
        kyc_document_s3_path=body.kyc_document_s3_path,
    )


@router.get("/{creator_id}/dashboard", response_model=DashboardRead)
async def dashboard(
    creator_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: CreatorService = Depends(_svc),
):
    """Last 30 days of views, watch time and earnings. Owner only."""
    totals = await svc.dashboard(creator_id, identity.user_id)
    return DashboardRead(
        creator_id=creator_id,
        views=totals.views,
        watch_time_seconds=totals.watch_time_seconds,
        earnings=totals.earnings,
    )
