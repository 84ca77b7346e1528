"""
Storage targets for uploaded pitch videos and documents.

Files go to S3 when a bucket is configured, otherwise to the local upload
directory, which the API serves under ``/uploads``.
"""
import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from marketplace.core.config import Settings
from marketplace.core.errors import MarketplaceError, ValidationFailed

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {
    "video": {".mp4", ".mov", ".avi", ".webm"},
    "document": {".pdf", ".doc", ".docx", ".txt", ".ppt", ".pptx"},
}

LOCAL_URL_PREFIX = "/uploads"


def validate_upload(kind: str, filename: str | None, size: int, max_size: int) -> str:
    """Check name, extension and size. Returns the lower-cased extension."""
    if not filename:
        raise ValidationFailed(f"No {kind} file uploaded")
    extension = Path(filename).suffix.lower()
    allowed = ALLOWED_EXTENSIONS[kind]
    if extension not in allowed:
        raise ValidationFailed(
            f"Unsupported {kind} type '{extension or filename}'. Allowed: {', '.join(sorted(allowed))}"
        )
    if size == 0:
        raise ValidationFailed("Uploaded file is empty")
    if size > max_size:
        raise ValidationFailed(f"File exceeds the maximum upload size of {max_size // (1024 * 1024)}MB")
    return extension


class FileStorage(ABC):
    @abstractmethod
    def save(self, kind: str, extension: str, content: bytes, content_type: str | None) -> str:
        """Store the payload and return a URL that refers to it."""

    @staticmethod
    def object_name(kind: str, extension: str) -> str:
        return f"{kind}s/{uuid.uuid4().hex}{extension}"


class LocalFileStorage(FileStorage):
    def __init__(self, upload_dir: str):
        self.root = Path(upload_dir)

    def save(self, kind: str, extension: str, content: bytes, content_type: str | None) -> str:
        name = self.object_name(kind, extension)
        path = self.root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        logger.info(f"Stored {kind} upload at {path}")
        return f"{LOCAL_URL_PREFIX}/{name}"

    def resolve(self, name: str) -> Path | None:
        """Map a served name back to a file inside the upload directory."""
        root = self.root.resolve()
        path = (root / name).resolve()
        if root not in path.parents or not path.is_file():
            return None
        return path


class S3FileStorage(FileStorage):
    def __init__(self, bucket: str, region: str, endpoint_url: str | None = None, client=None):
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        if client is not None:
            self.client = client
        elif endpoint_url:
            # S3-compatible endpoint, e.g. MinIO in development
            self.client = boto3.client("s3", endpoint_url=endpoint_url, region_name=region)
        else:
            self.client = boto3.client("s3", region_name=region)

    def url_for(self, key: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def save(self, kind: str, extension: str, content: bytes, content_type: str | None) -> str:
        key = self.object_name(kind, extension)
        extra = {"ContentType": content_type} if content_type else {}
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=content, **extra)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 upload of {key} failed: {e}")
            raise MarketplaceError("Failed to store uploaded file") from e
        logger.info(f"Stored {kind} upload at s3://{self.bucket}/{key}")
        return self.url_for(key)


def create_file_storage(settings: Settings) -> FileStorage:
    if settings.S3_BUCKET:
        return S3FileStorage(settings.S3_BUCKET, settings.S3_REGION, settings.S3_ENDPOINT_URL)
    return LocalFileStorage(settings.UPLOAD_DIR)
