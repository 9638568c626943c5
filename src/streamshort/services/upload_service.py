"""Upload service — presigned media uploads for creators.

Learn: Two calls bracket an upload that never passes through us:

    request_upload:  creator check → UploadRequest row (pending) → presigned URL
    complete_upload: row matched on id + user_id → completed → transcode queue

Completion is a conditional UPDATE ... WHERE status != 'completed', so a
retried or duplicated notice can't enqueue the same upload twice.
"""

import uuid
from pathlib import PurePosixPath
from typing import Optional

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from streamshort.clock import Clock, system_clock
from streamshort.config import settings
from streamshort.db.models import UploadRequest
from streamshort.errors import ConflictError, ValidationError
from streamshort.events.store import EventStore
from streamshort.events.types import UPLOAD_COMPLETED, UPLOAD_REQUESTED
from streamshort.services.ownership import OwnershipResolver
from streamshort.storage.uploads import (
    LoggingTranscodeQueue,
    LoggingUploadStorage,
    PresignedUpload,
    TranscodeQueue,
    UploadStorage,
)

logger = structlog.get_logger()

COMPLETED = "completed"


class UploadService:
    def __init__(
        self,
        db: AsyncSession,
        storage: Optional[UploadStorage] = None,
        transcoder: Optional[TranscodeQueue] = None,
        clock: Clock = system_clock,
    ):
        self.db = db
        self.storage = storage or LoggingUploadStorage()
        self.transcoder = transcoder or LoggingTranscodeQueue()
        self.clock = clock
        self.events = EventStore(db)
        self.ownership = OwnershipResolver(db)

    async def request_upload(
        self,
        user_id: uuid.UUID,
        filename: str,
        content_type: str,
        size_bytes: int,
        metadata: Optional[dict] = None,
    ) -> tuple[UploadRequest, PresignedUpload]:
        filename = PurePosixPath((filename or "").strip()).name
        content_type = (content_type or "").strip()
        if not filename or not content_type or not size_bytes or size_bytes <= 0:
            raise ValidationError("Filename, content type, and size are required")
        if size_bytes > settings.max_upload_bytes:
            raise ValidationError(
                f"File too large (max {settings.max_upload_bytes} bytes)"
            )

        creator = await self.ownership.creator_for_user(user_id)

        now = self.clock.now()
        upload = UploadRequest(
            user_id=user_id,
            filename=filename,
            content_type=content_type,
            size_bytes=size_bytes,
            meta=metadata or {},
            status="pending",
            created_at=now,
            updated_at=now,
        )
        self.db.add(upload)
        await self.db.flush()

        # Presign before committing: no row without a URL to go with it.
        presigned = await self.storage.presign_upload(
            f"uploads/{creator.id}/{upload.id}/{filename}",
            content_type,
            settings.upload_url_expire_seconds,
        )

        await self.events.append(
            stream_id=f"creator:{creator.id}",
            event_type=UPLOAD_REQUESTED,
            data={"upload_id": str(upload.id), "size_bytes": size_bytes},
        )
        await self.db.commit()

        logger.info(
            "upload.requested",
            upload_id=str(upload.id),
            creator_id=str(creator.id),
            size_bytes=size_bytes,
        )
        return upload, presigned

    async def complete_upload(
        self,
        upload_id: uuid.UUID,
        user_id: uuid.UUID,
        s3_path: str,
        size_bytes: int,
    ) -> UploadRequest:
        """Mark the caller's upload completed and queue it for transcoding.

        Raises:
            ValidationError: s3_path or size missing
            NotFoundOrDenied: no such upload for this user
            ConflictError: already completed
        """
        s3_path = (s3_path or "").strip()
        if not s3_path or not size_bytes or size_bytes <= 0:
            raise ValidationError("S3 path and size are required")

        upload = await self.ownership.upload(upload_id, user_id)

        now = self.clock.now()
        result = await self.db.execute(
            update(UploadRequest)
            .where(UploadRequest.id == upload.id, UploadRequest.status != COMPLETED)
            .values(status=COMPLETED, s3_path=s3_path, size_bytes=size_bytes, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError("Upload already completed")

        await self.events.append(
            stream_id=f"upload:{upload.id}",
            event_type=UPLOAD_COMPLETED,
            data={"s3_path": s3_path, "size_bytes": size_bytes},
        )
        # Enqueue inside the transaction: if the queue refuses, the
        # upload stays open and the client can notify again.
        await self.transcoder.enqueue(str(upload.id), s3_path)
        await self.db.commit()
        await self.db.refresh(upload)

        logger.info("upload.completed", upload_id=str(upload.id), s3_path=s3_path)
        return upload
