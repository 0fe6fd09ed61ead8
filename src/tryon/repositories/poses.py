"""Pose repository: catalog poses and user-saved custom models."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tryon.models.pose import ModelPose, SavedModel


class PoseRepository:
    """Read access to both pose sources."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_catalog_pose(self, pose_id: UUID) -> ModelPose | None:
        result = await self.session.execute(
            select(ModelPose).where(ModelPose.id == pose_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def get_saved_model(self, model_id: UUID) -> SavedModel | None:
        """Retrieve a saved model regardless of owner; ownership is checked by the caller."""
        result = await self.session.execute(
            select(SavedModel).where(SavedModel.id == model_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def add(self, pose: ModelPose | SavedModel) -> ModelPose | SavedModel:
        self.session.add(pose)
        await self.session.flush()
        return pose
