"""Customization repository: saved shot preferences, format and background presets."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tryon.models.customization import (
    BackgroundPreset,
    GenerationCustomization,
    ImageFormatPreset,
)


class CustomizationRepository:
    """Repository for customization profiles and the presets they reference."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_for_upload(self, upload_id: UUID) -> GenerationCustomization | None:
        """Retrieve the customization saved against an upload, if any."""
        result = await self.session.execute(
            select(GenerationCustomization).where(
                GenerationCustomization.upload_id == upload_id  # type: ignore[arg-type]
            )
        )
        return result.scalar_one_or_none()

    async def get_format_preset(self, format_id: UUID) -> ImageFormatPreset | None:
        result = await self.session.execute(
            select(ImageFormatPreset).where(ImageFormatPreset.id == format_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def get_background_preset(self, preset_id: UUID) -> BackgroundPreset | None:
        result = await self.session.execute(
            select(BackgroundPreset).where(BackgroundPreset.id == preset_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def add(
        self, entity: GenerationCustomization | ImageFormatPreset | BackgroundPreset
    ) -> GenerationCustomization | ImageFormatPreset | BackgroundPreset:
        self.session.add(entity)
        await self.session.flush()
        return entity
