"""Supabase Storage client for reference images and generated artifacts."""

import asyncio
from uuid import UUID

import httpx
import structlog

from tryon.services.exceptions import (
    StorageAuthError,
    StorageError,
    StorageNetworkError,
    StorageNotFoundError,
    TransientError,
)
from tryon.services.providers.gateway import ImagePayload
from tryon.services.storage.base import StoredObject

logger = structlog.get_logger()

_EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}


def _classify_response(response: httpx.Response) -> None:
    """Raise the matching storage error for a non-2xx response."""
    if response.status_code == 429:
        raise StorageNetworkError(f"Rate limit exceeded: {response.text}")
    elif response.status_code in (500, 502, 503):
        raise StorageNetworkError(f"Service unavailable ({response.status_code}): {response.text}")
    elif response.status_code in (401, 403):
        raise StorageAuthError(
            f"Storage rejected credentials ({response.status_code}). "
            "Check SUPABASE_SERVICE_ROLE_KEY in .env."
        )
    elif response.status_code == 404:
        raise StorageNotFoundError(f"Object not found: {response.url}")
    elif response.status_code >= 400:
        raise StorageError(f"Storage request failed ({response.status_code}): {response.text}")


class SupabaseStorage:
    """Object storage backed by the Supabase Storage REST API."""

    def __init__(
        self,
        base_url: str,
        service_role_key: str,
        images_bucket: str = "generated-images",
        thumbnails_bucket: str = "thumbnails",
        timeout: float = 60.0,
        upload_attempts: int = 3,
        retry_delays: tuple[float, ...] = (1.0, 2.0),
    ):
        """Initialize storage client.

        Args:
            base_url: Supabase project URL (SUPABASE_URL)
            service_role_key: Key with write access to the buckets
            images_bucket: Bucket for full-size generated images
            thumbnails_bucket: Bucket for thumbnails
            timeout: Per-request timeout in seconds
            upload_attempts: Total attempts for an upload on transient errors
            retry_delays: Sleep before each retry (last value repeats)
        """
        self.base_url = base_url.rstrip("/")
        self.images_bucket = images_bucket
        self.thumbnails_bucket = thumbnails_bucket
        self.timeout = timeout
        self.upload_attempts = max(1, upload_attempts)
        self.retry_delays = retry_delays or (0.0,)
        self.headers = {
            "Authorization": f"Bearer {service_role_key}",
            "apikey": service_role_key,
        }

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{path}"

    async def fetch_image(self, url: str) -> ImagePayload:
        """Download an image by public URL.

        Raises:
            StorageNetworkError: Timeout, connection failure, 429 or 5xx
            StorageNotFoundError: 404
            StorageError: Any other failure status
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url)
        except httpx.TimeoutException as e:
            raise StorageNetworkError(f"Request timeout after {self.timeout}s: {e}") from e
        except httpx.HTTPError as e:
            raise StorageNetworkError(f"Network error: {e}") from e

        _classify_response(response)
        mime_type = response.headers.get("content-type", "image/jpeg").split(";")[0]
        return ImagePayload(data=response.content, mime_type=mime_type)

    async def _upload(self, bucket: str, path: str, image: ImagePayload) -> StoredObject:
        headers = {**self.headers, "Content-Type": image.mime_type, "x-upsert": "true"}
        url = f"{self.base_url}/storage/v1/object/{bucket}/{path}"

        for attempt in range(1, self.upload_attempts + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, headers=headers, content=image.data)
                _classify_response(response)
                return StoredObject(path=path, public_url=self.public_url(bucket, path))
            except (httpx.TimeoutException, httpx.TransportError, TransientError) as e:
                if attempt >= self.upload_attempts:
                    if isinstance(e, TransientError):
                        raise
                    raise StorageNetworkError(f"Upload failed after {attempt} attempts: {e}") from e
                delay = self.retry_delays[min(attempt - 1, len(self.retry_delays) - 1)]
                logger.warning(
                    "storage.upload_retry",
                    bucket=bucket,
                    path=path,
                    attempt=attempt,
                    delay=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)

        raise StorageError("unreachable")  # pragma: no cover

    async def upload_generated_image(
        self, owner_id: UUID, generation_id: UUID, image: ImagePayload
    ) -> StoredObject:
        extension = _EXTENSIONS.get(image.mime_type, "png")
        path = f"{owner_id}/generations/{generation_id}.{extension}"
        return await self._upload(self.images_bucket, path, image)

    async def upload_thumbnail(
        self, owner_id: UUID, generation_id: UUID, image: ImagePayload
    ) -> StoredObject:
        extension = _EXTENSIONS.get(image.mime_type, "jpg")
        path = f"{owner_id}/thumbnails/{generation_id}_thumb.{extension}"
        return await self._upload(self.thumbnails_bucket, path, image)
