"""Primary image synthesis with a bounded number of attempts."""

from typing import Optional
from uuid import UUID

import structlog

from tryon.services.generation.prompt_synthesis import is_content_safety_rejection
from tryon.services.generation.types import (
    BackgroundStrategy,
    FailureKind,
    GenerationFailure,
    ReferenceSet,
    StageResult,
)
from tryon.services.providers.gateway import ImagePayload, ImageResult, ModelProviderGateway

logger = structlog.get_logger()

SYNTHESIS_RETRY_MESSAGE = "We couldn't generate the image this time. Please try again in a moment."


def decide_background_strategy(references: ReferenceSet) -> BackgroundStrategy:
    """Choose once how a custom background reaches the final image.

    Integrated compositing needs a concrete reference image and the user's
    integrated mode; description-only selections are always deferred.
    """
    tool = references.profile.tools.change_background
    if not tool.wants_custom:
        return BackgroundStrategy.NO_BACKGROUND
    if references.background is not None and tool.mode == "integrated":
        return BackgroundStrategy.INTEGRATED
    return BackgroundStrategy.DEFERRED_EDIT


class ImageSynthesizer:
    def __init__(self, gateway: ModelProviderGateway, max_attempts: int = 2):
        self.gateway = gateway
        self.max_attempts = max(1, max_attempts)

    async def synthesize(
        self,
        generation_id: UUID,
        instruction: str,
        references: ReferenceSet,
        strategy: BackgroundStrategy,
    ) -> StageResult[ImageResult]:
        """Call the provider until a usable image comes back or attempts run out."""
        background: Optional[ImagePayload] = (
            references.background if strategy is BackgroundStrategy.INTEGRATED else None
        )

        result: Optional[ImageResult] = None
        for attempt in range(1, self.max_attempts + 1):
            result = await self.gateway.synthesize_image(
                instruction,
                references.garments,
                references.pose,
                background,
                references.profile.aspect_ratio,
            )
            if result.usable:
                return result
            logger.warning(
                "generation.synthesis_attempt_failed",
                generation_id=str(generation_id),
                attempt=attempt,
                max_attempts=self.max_attempts,
                error=result.error,
            )

        error = result.error if result is not None else None
        if is_content_safety_rejection(error):
            logger.warning("generation.synthesis_blocked", generation_id=str(generation_id))

        # Provider detail stays on the record; users only see the generic message
        return GenerationFailure(
            FailureKind.SYNTHESIS,
            SYNTHESIS_RETRY_MESSAGE,
            record_message=error or "Failed to generate virtual try-on",
        )
