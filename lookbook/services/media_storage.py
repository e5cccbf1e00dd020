from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import unquote, urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from lookbook.config import settings
from lookbook.services.errors import BadRequestError, NotFoundError

logger = logging.getLogger(__name__)

PUBLIC_CACHE_CONTROL = "public, max-age=31536000"
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class MediaStorageConfigurationError(RuntimeError):
    pass


class MediaStorageError(BadRequestError):
    pass


class MediaObjectNotFoundError(NotFoundError):
    pass


def _error_code(exc: ClientError) -> Optional[str]:
    response = getattr(exc, "response", None) or {}
    return response.get("Error", {}).get("Code")


class MediaStorage:
    """
    Thin wrapper around a single bucket on GCS, spoken to through its S3-compatible API.

    Objects written here are public; ``public_url`` is the permanent URL handed to clients.
    """

    def __init__(self, *, client: Any = None, bucket: Optional[str] = None) -> None:
        self.bucket = bucket or settings.MEDIA_STORAGE_BUCKET
        if not self.bucket:
            raise MediaStorageConfigurationError("MEDIA_STORAGE_BUCKET is required")
        self.public_base_url = (settings.MEDIA_STORAGE_PUBLIC_BASE_URL or "").rstrip("/")
        self.presign_ttl = int(settings.MEDIA_STORAGE_PRESIGN_TTL_SECONDS or 3600)

        if client is not None:
            self.client = client
            return

        if not settings.MEDIA_STORAGE_ENDPOINT:
            raise MediaStorageConfigurationError("MEDIA_STORAGE_ENDPOINT is required")
        if not settings.MEDIA_STORAGE_ACCESS_KEY or not settings.MEDIA_STORAGE_SECRET_KEY:
            raise MediaStorageConfigurationError(
                "MEDIA_STORAGE_ACCESS_KEY and MEDIA_STORAGE_SECRET_KEY are required"
            )

        addressing_style = "path" if settings.MEDIA_STORAGE_FORCE_PATH_STYLE else "auto"
        session = boto3.session.Session()
        self.client = session.client(
            "s3",
            endpoint_url=settings.MEDIA_STORAGE_ENDPOINT,
            aws_access_key_id=settings.MEDIA_STORAGE_ACCESS_KEY,
            aws_secret_access_key=settings.MEDIA_STORAGE_SECRET_KEY,
            region_name=settings.MEDIA_STORAGE_REGION or "auto",
            use_ssl=bool(settings.MEDIA_STORAGE_USE_SSL),
            config=Config(
                s3={"addressing_style": addressing_style},
                signature_version="s3v4",
            ),
        )

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{path.lstrip('/')}"

    def extract_path(self, path_or_url: str) -> str:
        """
        Resolve a stored location to an object key.

        Accepts public URLs (``<public base>/<bucket>/<key>``), GCS URLs in path or
        virtual-host style (signed or not), and plain keys, which are returned as-is.
        """
        value = path_or_url.strip()
        public_prefix = f"{self.public_base_url}/{self.bucket}/"
        if self.public_base_url and value.startswith(public_prefix):
            return unquote(value[len(public_prefix):].split("?", 1)[0])

        if not value.startswith(("http://", "https://")):
            return value.lstrip("/")

        parsed = urlparse(value)
        key = unquote(parsed.path.lstrip("/"))
        host = (parsed.hostname or "").lower()
        if host.startswith(f"{self.bucket.lower()}."):
            return key
        if key.startswith(f"{self.bucket}/"):
            return key[len(self.bucket) + 1:]
        return key

    def upload_public(
        self,
        *,
        data: bytes,
        path: str,
        content_type: str,
        cache_control: Optional[str] = PUBLIC_CACHE_CONTROL,
    ) -> str:
        if not content_type:
            raise MediaStorageError("Content type is required for file upload")
        kwargs: dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": path,
            "Body": data,
            "ContentType": content_type,
            "ACL": "public-read",
        }
        if cache_control:
            kwargs["CacheControl"] = cache_control
        try:
            self.client.put_object(**kwargs)
        except (ClientError, BotoCoreError) as exc:
            logger.exception("media_storage.upload_failed", extra={"key": path})
            raise MediaStorageError(f"Failed to upload file: {exc}") from exc
        logger.info("media_storage.uploaded", extra={"key": path, "bytes": len(data)})
        return self.public_url(path)

    def download(self, path_or_url: str) -> bytes:
        key = self.extract_path(path_or_url)
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                raise MediaObjectNotFoundError(f"File not found: {key}") from exc
            raise MediaStorageError(f"Failed to download file: {exc}") from exc
        except BotoCoreError as exc:
            raise MediaStorageError(f"Failed to download file: {exc}") from exc
        body = obj.get("Body")
        return body.read() if body else b""

    def delete(self, path: str) -> None:
        key = self.extract_path(path)
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                logger.warning("media_storage.delete_missing_object", extra={"key": key})
                return
            raise MediaStorageError(f"Failed to delete file: {exc}") from exc
        except BotoCoreError as exc:
            raise MediaStorageError(f"Failed to delete file: {exc}") from exc
        logger.info("media_storage.deleted", extra={"key": key})

    def presign_get(self, path: str, *, expires_in: Optional[int] = None) -> str:
        ttl = int(expires_in or self.presign_ttl or 3600)
        return self.client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": self.extract_path(path)},
            ExpiresIn=ttl,
        )
