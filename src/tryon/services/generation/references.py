"""Reference resolution: uploads, pose source, customization profile and images."""

import asyncio
import base64
import binascii
from typing import Any, Optional
from uuid import UUID

import structlog

from tryon.models.customization import GenerationCustomization
from tryon.models.upload import UserUpload
from tryon.services.exceptions import ServiceError, StorageNotFoundError
from tryon.services.generation.types import (
    AiTools,
    CatalogPose,
    CustomizationProfile,
    FailureKind,
    GenerationFailure,
    OriginalUploadAsPose,
    PoseMetadata,
    PoseSource,
    ReferenceSet,
    SavedCustomModel,
    StageResult,
    parse_pose_reference,
)
from tryon.services.providers.gateway import ImagePayload
from tryon.services.storage.base import ObjectStorage

logger = structlog.get_logger()

ASPECT_DIMENSIONS: dict[str, tuple[int, int]] = {
    "1:1": (1024, 1024),
    "2:3": (832, 1248),
    "3:2": (1248, 832),
    "3:4": (864, 1184),
    "4:3": (1184, 864),
    "4:5": (896, 1152),
    "5:4": (1152, 896),
    "9:16": (768, 1344),
    "16:9": (1344, 768),
    "21:9": (1536, 672),
}
DEFAULT_ASPECT_RATIO = "3:4"

DEFAULT_HEIGHT_CM = 170
DEFAULT_WEIGHT_KG = 60
BODY_SIZE_WEIGHTS = {"P": 52, "M": 60, "G": 72, "plus-size": 85}

ORIGINAL_POSE_DESCRIPTION = "Original pose photo uploaded by the user"
ORIGINAL_POSE_CATEGORY = "original_reference"


def _metadata_description(metadata: Optional[dict[str, Any]]) -> Optional[str]:
    metadata = metadata or {}
    return metadata.get("description") or metadata.get("reference") or metadata.get("poseDescription")


def _decode_base64(data: str, mime_type: str) -> Optional[ImagePayload]:
    try:
        return ImagePayload(data=base64.b64decode(data, validate=True), mime_type=mime_type)
    except (binascii.Error, ValueError):
        return None


def build_profile(
    customization: Optional[GenerationCustomization], aspect_ratio: Optional[str] = None
) -> CustomizationProfile:
    """Turn a stored customization (or its absence) into a profile with defaults applied."""
    ratio = aspect_ratio if aspect_ratio in ASPECT_DIMENSIONS else DEFAULT_ASPECT_RATIO
    width, height = ASPECT_DIMENSIONS[ratio]

    if customization is None:
        return CustomizationProfile(aspect_ratio=ratio, width=width, height=height)

    weight = customization.model_weight_kg or BODY_SIZE_WEIGHTS.get(
        customization.body_size or "", DEFAULT_WEIGHT_KG
    )
    return CustomizationProfile(
        height_cm=customization.model_height_cm or DEFAULT_HEIGHT_CM,
        weight_kg=weight,
        age_range=customization.age_range,
        body_size=customization.body_size,
        facial_expression=customization.facial_expression,
        hair_color=customization.hair_color,
        aspect_ratio=ratio,
        width=width,
        height=height,
        tools=AiTools.from_json(customization.ai_tools),
    )


class ReferenceResolver:
    """Loads and validates every input of an attempt without writing anything."""

    def __init__(self, uow_factory, storage: ObjectStorage):
        self.uow_factory = uow_factory
        self.storage = storage

    async def resolve(self, user_id: UUID, upload_ids: list[UUID]) -> StageResult[ReferenceSet]:
        async with await self.uow_factory() as uow:
            user = await uow.users.get_by_id(user_id)
            if user is None:
                return GenerationFailure(FailureKind.NOT_FOUND, "User not found")

            uploads = await uow.uploads.get_owned(user_id, upload_ids)
            if len(uploads) != len(upload_ids):
                return GenerationFailure(FailureKind.NOT_FOUND, "Uploads not found")

            pose_reference = next(
                (upload.selected_pose_id for upload in uploads if upload.selected_pose_id), None
            )
            pose_source = parse_pose_reference(pose_reference)
            if pose_source is None:
                return GenerationFailure(
                    FailureKind.VALIDATION, "No pose selected. Please choose a pose before generating."
                )

            pose = await self._resolve_pose(uow, user_id, pose_source, uploads)
            if isinstance(pose, GenerationFailure):
                return pose
            pose_url, pose_metadata = pose

            customization = await uow.customizations.get_for_upload(uploads[0].id)
            aspect_ratio = None
            if customization is not None and customization.format_id is not None:
                preset = await uow.customizations.get_format_preset(customization.format_id)
                aspect_ratio = preset.aspect_ratio if preset else None
            profile = build_profile(customization, aspect_ratio)

            background_url = await self._background_preset_url(uow, profile)
            available_credits = user.credits

        try:
            *garments, pose_image = await asyncio.gather(
                *(self.storage.fetch_image(upload.public_url) for upload in uploads),
                self.storage.fetch_image(pose_url),
            )
        except StorageNotFoundError as e:
            logger.warning("generation.reference_image_missing", user_id=str(user_id), error=str(e))
            return GenerationFailure(FailureKind.NOT_FOUND, "Reference image not found")
        except ServiceError as e:
            logger.error("generation.reference_fetch_failed", user_id=str(user_id), error=str(e))
            return GenerationFailure(
                FailureKind.INTERNAL, "Could not load reference images", retryable=True
            )

        background = None
        if profile.tools.change_background.wants_custom:
            background = await self._load_background(profile, background_url)
        logo = None
        if profile.tools.add_logo.active:
            logo = await self._load_asset(profile.tools.add_logo.logo, "logo")

        return ReferenceSet(
            user_id=user_id,
            available_credits=available_credits,
            uploads=uploads,
            garments=list(garments),
            pose=pose_image,
            pose_source=pose_source,
            pose_reference=pose_reference or "",
            pose_metadata=pose_metadata,
            profile=profile,
            background=background,
            logo=logo,
        )

    async def _resolve_pose(
        self, uow, user_id: UUID, source: PoseSource, uploads: list[UserUpload]
    ) -> StageResult[tuple[str, PoseMetadata]]:
        if isinstance(source, CatalogPose):
            pose = await uow.poses.get_catalog_pose(source.pose_id)
            if pose is None:
                return GenerationFailure(FailureKind.NOT_FOUND, "Pose not found")
            return pose.image_url, PoseMetadata(
                gender=pose.gender,
                age_min=pose.age_min,
                age_max=pose.age_max,
                age_range=pose.age_range,
                ethnicity=pose.ethnicity,
                category=pose.pose_category,
                description=_metadata_description(pose.pose_metadata),
            )

        if isinstance(source, SavedCustomModel):
            model = await uow.poses.get_saved_model(source.model_id)
            if model is None:
                return GenerationFailure(FailureKind.NOT_FOUND, "Saved model not found")
            if model.user_id != user_id:
                logger.warning(
                    "generation.saved_model_forbidden",
                    user_id=str(user_id),
                    model_id=str(source.model_id),
                )
                return GenerationFailure(
                    FailureKind.FORBIDDEN, "You do not have access to this model"
                )
            defaults = PoseMetadata()
            return model.image_url, PoseMetadata(
                gender=model.gender or defaults.gender,
                age_min=model.age_min if model.age_min is not None else defaults.age_min,
                age_max=model.age_max if model.age_max is not None else defaults.age_max,
                age_range=model.age_range or defaults.age_range,
                ethnicity=model.ethnicity or defaults.ethnicity,
                category=model.pose_category or defaults.category,
                description=_metadata_description(model.pose_metadata),
            )

        upload = next((u for u in uploads if u.id == source.upload_id), None)
        if upload is None:
            owned = await uow.uploads.get_owned(user_id, [source.upload_id])
            upload = owned[0] if owned else None
        if upload is None:
            return GenerationFailure(FailureKind.NOT_FOUND, "Original pose upload not found")
        return upload.public_url, PoseMetadata(
            category=ORIGINAL_POSE_CATEGORY, description=ORIGINAL_POSE_DESCRIPTION
        )

    async def _background_preset_url(self, uow, profile: CustomizationProfile) -> Optional[str]:
        tool = profile.tools.change_background
        if not tool.wants_custom or tool.selection_type != "preset":
            return None
        try:
            preset_id = UUID(str((tool.selection or {}).get("presetId")))
        except ValueError:
            return None
        preset = await uow.customizations.get_background_preset(preset_id)
        return preset.image_url if preset else None

    async def _load_background(
        self, profile: CustomizationProfile, preset_url: Optional[str]
    ) -> Optional[ImagePayload]:
        """Resolve the background reference image; None when only a description exists."""
        selection = profile.tools.change_background.selection or {}
        kind = selection.get("type")

        if kind == "preset":
            return await self._load_asset(preset_url, "background")
        if kind == "custom":
            return await self._load_asset(selection.get("customUrl"), "background")
        if kind == "ai":
            if selection.get("aiImageData"):
                return _decode_base64(
                    selection["aiImageData"], selection.get("aiImageMimeType") or "image/png"
                )
            return ImagePayload.from_data_uri(selection.get("aiPreviewUrl") or "")
        return None

    async def _load_asset(self, reference: Optional[str], asset: str) -> Optional[ImagePayload]:
        """Load an optional asset given as a data URI or an http(s) URL.

        Optional assets never fail the attempt; a miss downgrades the edit that
        would have used them.
        """
        if not reference:
            return None
        parsed = ImagePayload.from_data_uri(reference)
        if parsed is not None:
            return parsed
        if not reference.startswith("http"):
            return None
        try:
            return await self.storage.fetch_image(reference)
        except ServiceError as e:
            logger.warning("generation.optional_asset_unavailable", asset=asset, error=str(e))
            return None
