"""Object storage interface consumed by the generation pipeline."""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from tryon.services.providers.gateway import ImagePayload


@dataclass(frozen=True)
class StoredObject:
    path: str
    public_url: str


class ObjectStorage(Protocol):
    """Read reference images and persist generated artifacts.

    Failures raise ``tryon.services.exceptions.ServiceError`` subclasses.
    """

    async def fetch_image(self, url: str) -> ImagePayload: ...

    async def upload_generated_image(
        self, owner_id: UUID, generation_id: UUID, image: ImagePayload
    ) -> StoredObject: ...

    async def upload_thumbnail(
        self, owner_id: UUID, generation_id: UUID, image: ImagePayload
    ) -> StoredObject: ...
