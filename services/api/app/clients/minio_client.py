"""
MinIO (S3-compatible) client for uploaded images.

Post images and avatars are stored as objects; the API keeps only the
durable URL built from the public base URL, bucket and object key.
"""
import logging
import mimetypes
import uuid
from io import BytesIO

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile

from app.config import Settings
from app.errors import BadRequest

logger = logging.getLogger(__name__)


class MediaStorage:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._s3 = None

    def init(self) -> None:
        """Create the S3 client and ensure the media bucket exists."""
        scheme = "https" if self._settings.minio_use_ssl else "http"
        self._s3 = boto3.client(
            "s3",
            endpoint_url=f"{scheme}://{self._settings.minio_endpoint}",
            aws_access_key_id=self._settings.minio_access_key,
            aws_secret_access_key=self._settings.minio_secret_key,
            config=Config(signature_version="s3v4"),
            region_name="us-east-1",
        )

        bucket = self._settings.minio_bucket
        existing = [b["Name"] for b in self._s3.list_buckets().get("Buckets", [])]
        if bucket not in existing:
            self._s3.create_bucket(Bucket=bucket)
            logger.info("Created MinIO bucket '%s'", bucket)
        else:
            logger.info("MinIO bucket '%s' already exists", bucket)

    def _client(self):
        if self._s3 is None:
            raise RuntimeError("MinIO client not initialised — call init() at startup")
        return self._s3

    def public_url(self, key: str) -> str:
        base = self._settings.minio_public_url
        if not base:
            scheme = "https" if self._settings.minio_use_ssl else "http"
            base = f"{scheme}://{self._settings.minio_endpoint}"
        return f"{base.rstrip('/')}/{self._settings.minio_bucket}/{key}"

    def upload_image(self, data: bytes, content_type: str, prefix: str) -> str:
        """
        Upload image bytes and return the durable URL.
        Key format: {prefix}/{uuid}{ext}
        """
        ext = mimetypes.guess_extension(content_type) or ""
        key = f"{prefix}/{uuid.uuid4()}{ext}"
        self._client().put_object(
            Bucket=self._settings.minio_bucket,
            Key=key,
            Body=BytesIO(data),
            ContentType=content_type,
        )
        logger.debug("Uploaded image to MinIO: %s", key)
        return self.public_url(key)

    def delete_image(self, url: str) -> None:
        """Remove an object previously returned by upload_image(). Best effort."""
        prefix = self.public_url("")
        if not url.startswith(prefix):
            logger.warning("Not a media URL, skipping delete: %s", url)
            return
        key = url[len(prefix):]
        try:
            self._client().delete_object(Bucket=self._settings.minio_bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            logger.warning("Failed to delete orphan image %s: %s", key, exc)
            return
        logger.info("Deleted orphan image from MinIO: %s", key)


async def read_image(upload: UploadFile, max_bytes: int) -> tuple[bytes, str]:
    """Validate an uploaded `image` field: image/* only, at most max_bytes."""
    content_type = upload.content_type or ""
    if not content_type.startswith("image/"):
        raise BadRequest("Apenas imagens são permitidas!")

    data = await upload.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise BadRequest(f"A imagem excede o limite de {max_bytes // (1024 * 1024)}MB.")
    if not data:
        raise BadRequest("Arquivo de imagem vazio.")
    return data, content_type
