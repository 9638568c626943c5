"""Pydantic schemas for creator profiles and the dashboard."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CreatorOnboard(BaseModel):
    display_name: str = Field(..., max_length=100)
    bio: Optional[str] = None
    kyc_document_s3_path: str


class CreatorUpdate(BaseModel):
    """All fields optional — only the ones sent are changed."""
    display_name: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = None
    kyc_document_s3_path: Optional[str] = None


class CreatorRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    display_name: str
    bio: str
    kyc_document_s3_path: str
    kyc_status: str
    rating: Optional[float] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DashboardRead(BaseModel):
    creator_id: uuid.UUID
    views: int
    watch_time_seconds: int
    earnings: float
