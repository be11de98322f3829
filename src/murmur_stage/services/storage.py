"""Media blob storage backed by S3."""

from __future__ import annotations

import io
import logging
import re
from typing import Protocol

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from murmur_stage.core.errors import InternalError, ValidationFailed
from murmur_stage.core.settings import settings
from murmur_stage.db.time import utcnow

logger = logging.getLogger(__name__)

IMAGE_FOLDER = "images/posts/"
VIDEO_FOLDER = "videos/original/"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class BlobStore(Protocol):
    """Uploads media and returns the public URL."""

    def upload(self, data: bytes, filename: str, content_type: str) -> str:
        ...


def folder_for(content_type: str) -> str:
    """Return the key prefix for ``content_type``.

    Raises:
        ValidationFailed: If the media is neither an image nor a video.
    """
    kind = content_type.lower().split("/", 1)[0]
    if kind == "image":
        return IMAGE_FOLDER
    if kind == "video":
        return VIDEO_FOLDER
    raise ValidationFailed(
        "Only image and video uploads are supported",
        code="UNSUPPORTED_MEDIA_TYPE",
    )


def build_object_key(filename: str, content_type: str) -> str:
    """Return ``<folder><timestamp>-<sanitized filename>``."""
    safe = _UNSAFE_FILENAME_CHARS.sub("-", filename).strip("-.") or "upload"
    stamp = utcnow().strftime("%Y%m%d%H%M%S%f")
    return f"{folder_for(content_type)}{stamp}-{safe}"


class S3BlobStore:
    """Uploads post media into the configured S3 bucket."""

    def __init__(self) -> None:
        session = boto3.session.Session(
            aws_access_key_id=settings.aws_access_key_id or None,
            aws_secret_access_key=settings.aws_secret_access_key or None,
            region_name=settings.aws_s3_region or None,
        )
        self.s3 = session.client("s3", config=Config(s3={"addressing_style": "virtual"}))
        self.bucket = settings.aws_s3_bucket
        self.public_base = settings.aws_s3_public_url.strip() if settings.aws_s3_public_url else ""

    def upload(self, data: bytes, filename: str, content_type: str) -> str:
        """Upload ``data`` and return its public URL."""
        if not self.bucket:
            raise InternalError("Media storage is not configured", code="STORAGE_UNAVAILABLE")

        key = build_object_key(filename, content_type)
        try:
            self.s3.upload_fileobj(
                Fileobj=io.BytesIO(data),
                Bucket=self.bucket,
                Key=key,
                ExtraArgs={
                    "ContentType": content_type,
                    "CacheControl": "public, max-age=31536000",
                },
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("S3 upload of %s failed: %s", key, exc)
            raise InternalError("Media upload failed", code="UPLOAD_FAILED") from exc

        if self.public_base:
            return f"{self.public_base.rstrip('/')}/{key}"
        return f"https://{self.bucket}.s3.{settings.aws_s3_region}.amazonaws.com/{key}"


_blob_store: S3BlobStore | None = None


def get_blob_store() -> BlobStore:
    """FastAPI dependency returning the lazily created S3 store."""
    global _blob_store
    if _blob_store is None:
        _blob_store = S3BlobStore()
    return _blob_store
