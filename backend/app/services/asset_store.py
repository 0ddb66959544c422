"""
Asset Store

Byte buffers in, stable URLs out. Deletion is normally deferred through
the pending-deletion log (see asset_cleanup); ``delete`` is what the sweep
calls once an asset is no longer referenced.

Backends:
- S3AssetStore: AWS S3 or MinIO via boto3
- LocalAssetStore: filesystem directory served under LOCAL_ASSET_BASE_URL
"""

import asyncio
import time
from abc import ABC, abstractmethod
from functools import wraps
from pathlib import Path
from typing import Optional
from urllib.parse import quote, unquote, urlsplit

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from app.core.config import settings
from app.core.exceptions import ConfigurationError, StorageError, UploadFailedError
from app.core.logging_config import logger


def retry_with_backoff(max_retries: int = 3, base_delay: float = 1.0, max_delay: float = 30.0):
    """
    Decorator for retry logic with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap in seconds
    """
    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            last_exception = None
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except (ClientError, ConnectionError, TimeoutError) as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        delay = min(base_delay * (2 ** attempt), max_delay)
                        logger.warning(f"[S3-Retry] Attempt {attempt + 1}/{max_retries} failed: {e}. Retrying in {delay:.1f}s...")
                        await asyncio.sleep(delay)
                    else:
                        logger.error(f"[S3-Retry] All {max_retries} attempts failed: {e}")
            raise last_exception
        return async_wrapper
    return decorator


def normalize_key(key: str) -> str:
    key = key.strip().lstrip("/")
    if not key or ".." in key.split("/"):
        raise StorageError(f"Invalid asset key '{key}'", operation="key")
    return key


class AssetStore(ABC):
    """Upload/delete contract over an object store"""

    def __init__(self, public_base_url: str):
        self.public_base_url = public_base_url.rstrip("/")

    def url_for(self, key: str, version: Optional[int] = None) -> str:
        url = f"{self.public_base_url}/{quote(normalize_key(key))}"
        if version is not None:
            url = f"{url}?v={version}"
        return url

    def key_from_url(self, url: str) -> Optional[str]:
        """Extract the storage key from a URL this store issued, else None"""
        if not url or not isinstance(url, str):
            return None
        parts = urlsplit(url)
        base = urlsplit(self.public_base_url)
        if (parts.scheme, parts.netloc) != (base.scheme, base.netloc):
            return None
        prefix = base.path.rstrip("/") + "/"
        if not parts.path.startswith(prefix):
            return None
        key = unquote(parts.path[len(prefix):])
        return key or None

    async def upload(
        self,
        data: bytes,
        key: str,
        content_type: str = "application/octet-stream",
        versioned: bool = False,
    ) -> str:
        """
        Store ``data`` under ``key`` (overwriting) and return its URL.

        ``versioned`` appends a version marker so a regenerated artifact
        under the same key gets a fresh URL.
        """
        key = normalize_key(key)
        try:
            await self._put(key, data, content_type)
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"[AssetStore] Upload of {key} failed: {e}")
            raise UploadFailedError(key, str(e)) from e

        logger.info(f"[AssetStore] Uploaded {key} ({len(data)} bytes)")
        return self.url_for(key, version=int(time.time() * 1000) if versioned else None)

    async def delete(self, key: str) -> bool:
        key = normalize_key(key)
        deleted = await self._remove(key)
        if deleted:
            logger.info(f"[AssetStore] Deleted {key}")
        return deleted

    @abstractmethod
    async def _put(self, key: str, data: bytes, content_type: str) -> None:
        ...

    @abstractmethod
    async def _remove(self, key: str) -> bool:
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        ...


class LocalAssetStore(AssetStore):
    """Assets kept on local disk; used in development and tests"""

    def __init__(self, root: Path, public_base_url: str):
        super().__init__(public_base_url)
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.root / normalize_key(key)

    async def _put(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, data)

    async def _remove(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        await asyncio.to_thread(path.unlink)
        return True

    async def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    async def read(self, key: str) -> bytes:
        return await asyncio.to_thread(self._path(key).read_bytes)


class S3AssetStore(AssetStore):
    """S3/MinIO storage with lazily created client"""

    def __init__(self, bucket_name: str, public_base_url: str, use_minio: bool = False):
        super().__init__(public_base_url)
        self._bucket_name = bucket_name
        self._use_minio = use_minio
        self._client = None

    def _get_client(self):
        """Lazy initialization of S3/MinIO client"""
        if self._client is None:
            if self._use_minio:
                scheme = "https" if settings.MINIO_SECURE else "http"
                self._client = boto3.client(
                    's3',
                    endpoint_url=f"{scheme}://{settings.MINIO_ENDPOINT}",
                    aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                    aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                    config=Config(
                        signature_version='s3v4',
                        s3={'addressing_style': 'path'}
                    ),
                    region_name=settings.AWS_REGION
                )
            elif settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
                self._client = boto3.client(
                    's3',
                    aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                    aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                    region_name=settings.AWS_REGION
                )
            else:
                # Use IAM role credentials (automatic in ECS/EC2)
                self._client = boto3.client('s3', region_name=settings.AWS_REGION)
                logger.info("[AssetStore] S3 client using IAM role credentials")
        return self._client

    @retry_with_backoff(max_retries=3)
    async def _put(self, key: str, data: bytes, content_type: str) -> None:
        client = self._get_client()
        await asyncio.to_thread(
            client.put_object,
            Bucket=self._bucket_name,
            Key=key,
            Body=data,
            ContentType=content_type,
        )

    async def _remove(self, key: str) -> bool:
        client = self._get_client()
        try:
            await asyncio.to_thread(client.delete_object, Bucket=self._bucket_name, Key=key)
        except ClientError as e:
            raise StorageError(f"Failed to delete '{key}': {e}", operation="delete") from e
        return True

    async def exists(self, key: str) -> bool:
        client = self._get_client()
        try:
            await asyncio.to_thread(client.head_object, Bucket=self._bucket_name, Key=key)
            return True
        except ClientError:
            return False


def _s3_public_base_url() -> str:
    if settings.ASSET_PUBLIC_BASE_URL:
        return settings.ASSET_PUBLIC_BASE_URL
    if settings.STORAGE_MODE == "minio":
        scheme = "https" if settings.MINIO_SECURE else "http"
        return f"{scheme}://{settings.MINIO_ENDPOINT}/{settings.S3_BUCKET_NAME}"
    return f"https://{settings.S3_BUCKET_NAME}.s3.{settings.AWS_REGION}.amazonaws.com"


def get_asset_store() -> AssetStore:
    """Build the asset store selected by STORAGE_MODE"""
    mode = settings.STORAGE_MODE.lower()
    if mode == "local":
        return LocalAssetStore(settings.local_storage_path, settings.LOCAL_ASSET_BASE_URL)
    if mode in ("s3", "minio"):
        return S3AssetStore(
            bucket_name=settings.S3_BUCKET_NAME,
            public_base_url=_s3_public_base_url(),
            use_minio=mode == "minio",
        )
    raise ConfigurationError(f"Unknown STORAGE_MODE '{settings.STORAGE_MODE}'")
