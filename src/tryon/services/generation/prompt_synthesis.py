"""Prompt synthesis: optimizer brief for adults, fixed template for minors."""

from dataclasses import asdict
from typing import Optional
from uuid import UUID

import structlog

from tryon.services.generation.records import GenerationRecordManager
from tryon.services.generation.types import (
    BackgroundStrategy,
    FailureKind,
    GenerationFailure,
    PoseMetadata,
    ReferenceSet,
    StageResult,
    SynthesizedPrompt,
)
from tryon.services.providers.gateway import ModelProviderGateway, PromptBrief

logger = structlog.get_logger()

MINOR_TEMPLATE_MODEL = "fixed-template:minor-safe"
MINOR_AGE_RANGES = frozenset({"TEENS", "1-10", "10-15", "15-20"})

CONTENT_SAFETY_SIGNATURES = ("prohibited_content", "prohibited content", "content policy", "safety", "blocked")

CONTENT_SAFETY_MESSAGE = (
    "We couldn't create this image with the current selection. "
    "Please try again, or choose a different pose or garment photo."
)
PROCESSING_ERROR_MESSAGE = "We couldn't prepare your image right now. Please try again in a moment."

ONE_PIECE_CATEGORIES = frozenset(
    {
        "CASUAL_DRESS",
        "COCKTAIL_DRESS",
        "EVENING_GOWN",
        "MIDI_DRESS",
        "MAXI_DRESS",
        "SHIRT_DRESS",
        "WRAP_DRESS",
        "SUNDRESS",
        "JUMPSUIT",
        "ROMPER",
        "OVERALLS",
    }
)

ORIGINAL_BACKGROUND_DESCRIPTION = (
    "Preserve the original background and environment from the garment reference photo."
)


def is_minor_subject(pose: PoseMetadata, profile_age_range: Optional[str] = None) -> bool:
    """True if the pose or the declared profile describes someone under 18."""
    if pose.age_min is not None and pose.age_min < 18:
        return True
    return any(
        age_range in MINOR_AGE_RANGES for age_range in (pose.age_range, profile_age_range) if age_range
    )


def is_content_safety_rejection(error: Optional[str]) -> bool:
    lowered = (error or "").lower()
    return any(signature in lowered for signature in CONTENT_SAFETY_SIGNATURES)


def garment_placement_hint(
    garment_type: str, piece_type: Optional[str] = None, category: Optional[str] = None
) -> str:
    if garment_type == "outfit":
        return (
            "This is a COMPLETE OUTFIT with TWO separate garments (top + bottom). The model MUST "
            "wear BOTH pieces together: the upper garment from the first reference image on the "
            "top half of the body AND the lower garment from the second reference image on the "
            "bottom half, both clearly visible as one cohesive outfit."
        )
    if (category or "").upper() in ONE_PIECE_CATEGORIES:
        return (
            "Apply this one-piece garment so it covers both torso and legs, dressing the entire "
            "pose body as if the garment were worn in real life."
        )
    if piece_type == "lower":
        return (
            "Focus on replacing only the lower garment on the pose. Pair it with a simple, "
            "form-fitting neutral top that does not draw attention away from the featured piece."
        )
    return (
        "Dress only the upper body with this garment while keeping the lower half consistent "
        "with the pose reference, using a subtle complementary bottom if needed."
    )


def minor_background_directive(references: ReferenceSet, strategy: BackgroundStrategy) -> str:
    if references.profile.tools.change_background.keeps_original:
        return "original"
    if strategy is BackgroundStrategy.INTEGRATED:
        return "reference"
    return "neutral"


def build_minor_prompt(garment_type: str, width: int, height: int, background: str) -> str:
    """Minimal fixed instruction for subjects detected as minors."""
    if garment_type == "outfit":
        garment = "Dress the person in the reference pose image in all the garments shown in the garment reference images, worn together."
    else:
        garment = "Dress the person in the reference pose image in the garment shown in the garment reference image."

    backgrounds = {
        "original": "Keep the original background from the garment reference photo.",
        "reference": "Use the last reference image as the background.",
        "neutral": "Use a plain, neutral light-grey studio background.",
    }
    return (
        f"{garment} Keep the pose, body and face exactly as in the pose reference. "
        "Age-appropriate, modest, catalogue-style product photo with soft even lighting. "
        f"{backgrounds[background]} Output {width}x{height} pixels."
    )


def build_brief(
    references: ReferenceSet,
    strategy: BackgroundStrategy,
    pose_description: Optional[str],
    refinement_request: Optional[str] = None,
) -> PromptBrief:
    profile = references.profile
    tool = profile.tools.change_background

    background = None
    if tool.wants_custom:
        background = {
            "enabled": True,
            "type": "preset" if tool.selection_type == "preset" else "custom",
            "description": tool.description,
            "has_reference_image": strategy is BackgroundStrategy.INTEGRATED,
        }
    elif tool.keeps_original:
        background = {"enabled": True, "type": "original", "description": ORIGINAL_BACKGROUND_DESCRIPTION}

    return PromptBrief(
        garment_type=references.garment_type,
        garment_category=references.garment_category or "clothing",
        garment_description=references.garment_description,
        gender=references.pose_metadata.gender or "FEMALE",
        pose_category=references.pose_metadata.category or "standing",
        pose_description=pose_description,
        age_range=references.pose_metadata.age_range,
        body_size=profile.body_size,
        height_cm=profile.height_cm,
        weight_kg=profile.weight_kg,
        facial_expression=profile.facial_expression,
        hair_color=profile.hair_color,
        aspect_ratio=profile.aspect_ratio,
        width=profile.width,
        height=profile.height,
        placement_hint=garment_placement_hint(
            references.garment_type, references.piece_type, references.garment_category
        ),
        background=background,
        refinement_request=(refinement_request or "").strip() or None,
    )


class PromptSynthesizer:
    """Produces the generation instruction and persists it before synthesis runs."""

    def __init__(self, gateway: ModelProviderGateway, records: GenerationRecordManager):
        self.gateway = gateway
        self.records = records

    async def synthesize(
        self,
        generation_id: UUID,
        references: ReferenceSet,
        strategy: BackgroundStrategy,
        refinement_request: Optional[str] = None,
    ) -> StageResult[SynthesizedPrompt]:
        log = logger.bind(generation_id=str(generation_id))

        if is_minor_subject(references.pose_metadata, references.profile.age_range):
            directive = minor_background_directive(references, strategy)
            prompt = SynthesizedPrompt(
                text=build_minor_prompt(
                    references.garment_type, references.profile.width, references.profile.height, directive
                ),
                model=MINOR_TEMPLATE_MODEL,
                tokens_used=None,
                is_minor=True,
            )
            log.info("generation.minor_template_used", background=directive)
            await self.records.record_prompt(
                generation_id,
                prompt,
                {"garment_type": references.garment_type, "background": directive},
            )
            return prompt

        pose_description = references.pose_metadata.description
        if not pose_description:
            pose_description = await self._describe_pose(references)

        brief = build_brief(references, strategy, pose_description, refinement_request)
        result = await self.gateway.optimize_prompt(brief)

        if not result.success or not result.prompt:
            if is_content_safety_rejection(result.error):
                log.warning("generation.prompt_blocked", error=result.error)
                return GenerationFailure(
                    FailureKind.CONTENT_SAFETY,
                    CONTENT_SAFETY_MESSAGE,
                    retryable=True,
                    record_message=f"Prompt optimization blocked by content safety: {result.error}",
                )
            log.error("generation.prompt_optimization_failed", error=result.error)
            return GenerationFailure(
                FailureKind.PROMPT_OPTIMIZATION,
                PROCESSING_ERROR_MESSAGE,
                record_message=f"Prompt optimization failed: {result.error or 'empty prompt'}",
            )

        prompt = SynthesizedPrompt(
            text=result.prompt,
            model=result.model or "unknown",
            tokens_used=result.tokens_used,
            is_minor=False,
        )
        log.info("generation.prompt_optimized", model=prompt.model, tokens_used=prompt.tokens_used)
        await self.records.record_prompt(generation_id, prompt, asdict(brief))
        return prompt

    async def _describe_pose(self, references: ReferenceSet) -> Optional[str]:
        try:
            return await self.gateway.describe_pose(
                references.pose, references.pose_metadata.category, references.pose_metadata.gender
            )
        except Exception as e:
            logger.info("generation.pose_description_unavailable", error=str(e))
            return None
