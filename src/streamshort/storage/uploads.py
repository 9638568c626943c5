"""Object storage and transcoding hand-off for creator uploads.

Learn: Both are external collaborators. This backend records who asked
to upload what and hands out a presigned URL; the bytes go straight
from the client to the bucket, and the transcoder picks finished
uploads off a queue. Neither is implemented here.

Plug real ones in by implementing UploadStorage / TranscodeQueue and
overriding get_upload_storage / get_transcode_queue. The logging
versions below mint URLs that look like S3 ones but are not signed.
"""

from dataclasses import dataclass, field
from typing import Protocol

import structlog

from streamshort.config import settings

logger = structlog.get_logger()


@dataclass(frozen=True)
class PresignedUpload:
    url: str
    expires_in: int
    headers: dict[str, str] = field(default_factory=dict)


class UploadStorage(Protocol):
    """Anything that can authorize a direct PUT into object storage."""

    async def presign_upload(
        self, key: str, content_type: str, expires_in: int
    ) -> PresignedUpload:
        ...


class TranscodeQueue(Protocol):
    """Anything that accepts finished uploads for transcoding."""

    async def enqueue(self, upload_id: str, s3_path: str) -> None:
        ...


class LoggingUploadStorage:
    """Returns an unsigned URL under the configured bucket."""

    async def presign_upload(
        self, key: str, content_type: str, expires_in: int
    ) -> PresignedUpload:
        url = f"{settings.upload_bucket_url.rstrip('/')}/{key}"
        logger.info("storage.upload_presigned", key=key, expires_in=expires_in)
        return PresignedUpload(
            url=url,
            expires_in=expires_in,
            headers={"Content-Type": content_type},
        )


class LoggingTranscodeQueue:
    async def enqueue(self, upload_id: str, s3_path: str) -> None:
        logger.info("transcode.enqueued", upload_id=upload_id, s3_path=s3_path)


_storage: UploadStorage = LoggingUploadStorage()
_queue: TranscodeQueue = LoggingTranscodeQueue()


def get_upload_storage() -> UploadStorage:
    return _storage


def get_transcode_queue() -> TranscodeQueue:
    return _queue
