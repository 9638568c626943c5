"""Pydantic schemas for series and episodes.

Learn: Separate "Create"/"Update" schemas (input) from "Read" schemas
(output). Update schemas have every field optional so a PUT can be a
partial update. Status strings are validated in the service layer,
not here, so "PUBLISH" and "publish" are accepted and normalized
rather than rejected with a 422.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ─── Series ─────────────────────────────────────────────

class SeriesCreate(BaseModel):
    title: str = Field(..., max_length=200)
    synopsis: str
    language: str = Field(..., max_length=20)
    category_tags: list[str] = Field(default_factory=list)
    price_type: str = "free"
    price_amount: Optional[float] = None
    thumbnail_url: Optional[str] = None


class SeriesUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    synopsis: Optional[str] = None
    language: Optional[str] = Field(None, max_length=20)
    category_tags: Optional[list[str]] = None
    price_type: Optional[str] = None
    price_amount: Optional[float] = None
    thumbnail_url: Optional[str] = None
    status: Optional[str] = None


class SeriesRead(BaseModel):
    id: uuid.UUID
    creator_id: uuid.UUID
    title: str
    synopsis: str
    language: str
    category_tags: list[str]
    price_type: str
    price_amount: Optional[float] = None
    thumbnail_url: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SeriesDetail(SeriesRead):
    """Series with nested episodes."""
    episodes: list["EpisodeRead"] = []


class SeriesList(BaseModel):
    total: int
    items: list[SeriesRead]


class StatusUpdate(BaseModel):
    status: str


class SeriesStatusRead(BaseModel):
    id: uuid.UUID
    status: str

    model_config = {"from_attributes": True}


# ─── Episodes ───────────────────────────────────────────

class EpisodeCreate(BaseModel):
    title: str = Field(..., max_length=200)
    episode_number: int
    duration_seconds: int
    thumb_url: Optional[str] = None


class EpisodeUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    episode_number: Optional[int] = None
    duration_seconds: Optional[int] = None
    thumb_url: Optional[str] = None


class EpisodeRead(BaseModel):
    id: uuid.UUID
    series_id: uuid.UUID
    title: str
    episode_number: int
    duration_seconds: int
    thumb_url: Optional[str] = None
    status: str
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class EpisodeStatusRead(BaseModel):
    id: uuid.UUID
    status: str
    published_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


SeriesDetail.model_rebuild()


# ─── Uploads ────────────────────────────────────────────

class UploadUrlRequest(BaseModel):
    filename: str
    content_type: str
    size_bytes: int
    metadata: dict = Field(default_factory=dict)


class UploadUrlRead(BaseModel):
    upload_id: uuid.UUID
    presigned_url: str
    expires_in: int
    upload_headers: dict[str, str]


class UploadNotify(BaseModel):
    s3_path: str
    size_bytes: int


class UploadNotifyRead(BaseModel):
    upload_id: uuid.UUID
    status: str
