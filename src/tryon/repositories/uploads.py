"""UserUpload repository for the try-on backend."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tryon.models.upload import UserUpload


class UploadRepository:
    """Repository for UserUpload entities."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, upload: UserUpload) -> UserUpload:
        """Persist new upload to database."""
        self.session.add(upload)
        await self.session.flush()
        return upload

    async def get_owned(self, user_id: UUID, upload_ids: list[UUID]) -> list[UserUpload]:
        """Retrieve undeleted uploads owned by ``user_id``, in the requested order.

        Ids that do not exist, are deleted, or belong to someone else are
        simply absent from the result; callers compare lengths.
        """
        if not upload_ids:
            return []
        result = await self.session.execute(
            select(UserUpload).where(
                UserUpload.user_id == user_id,  # type: ignore[arg-type]
                UserUpload.id.in_(upload_ids),  # type: ignore[attr-defined]
                UserUpload.deleted_at.is_(None),  # type: ignore[union-attr]
            )
        )
        by_id = {upload.id: upload for upload in result.scalars().all()}
        return [by_id[upload_id] for upload_id in upload_ids if upload_id in by_id]
