"""Generation pipeline entry point.

Runs one attempt end to end inside the calling request:

    resolve references -> cost -> record (pending, processing) -> prompt
    -> pose guidance -> image synthesis -> post-processing -> settlement

Expected failures come back from each stage as ``GenerationFailure`` values.
Once the record exists, every failure (expected or not) finalizes it as
``failed``; credits are only debited inside settlement.
"""

from typing import Any, Optional
from uuid import UUID

import structlog

from tryon.core.config import Settings
from tryon.services.generation.costs import PRICING_ACTIONS, CostBreakdown, calculate_cost
from tryon.services.generation.pose_advisor import PoseAdvisor, compose_instruction
from tryon.services.generation.post_processing import PostProcessor
from tryon.services.generation.prompt_synthesis import PromptSynthesizer
from tryon.services.generation.records import GenerationRecordManager
from tryon.services.generation.references import ReferenceResolver
from tryon.services.generation.settlement import Settlement
from tryon.services.generation.synthesis import ImageSynthesizer, decide_background_strategy
from tryon.services.generation.types import (
    BackgroundStrategy,
    FailureKind,
    GenerationFailure,
    GenerationOutcome,
    GenerationRequest,
    ReferenceSet,
)
from tryon.services.providers.gateway import ModelProviderGateway
from tryon.services.storage.base import ObjectStorage

logger = structlog.get_logger()

REGENERATION_TYPES = ("feedback", "improvement")
MAX_IMPROVEMENT_TEXT_LENGTH = 2000
INTERNAL_ERROR_MESSAGE = "Something went wrong while generating your image. Please try again."


def parse_upload_ids(raw: Any) -> Optional[list[UUID]]:
    """Validate the inbound id list; None when missing, empty or malformed."""
    if not isinstance(raw, list) or not raw:
        return None
    parsed: list[UUID] = []
    for value in raw:
        try:
            upload_id = UUID(str(value))
        except ValueError:
            return None
        if upload_id not in parsed:
            parsed.append(upload_id)
    return parsed


def input_snapshot(
    references: ReferenceSet, strategy: BackgroundStrategy, cost: CostBreakdown, request: GenerationRequest
) -> dict[str, Any]:
    return {
        "upload_ids": [str(upload.id) for upload in references.uploads],
        "pose_reference": references.pose_reference,
        "pose_source": references.pose_source.kind,
        "customization": references.profile.snapshot(),
        "background_strategy": strategy.value,
        "credits_breakdown": cost.as_dict(),
        "regeneration_type": request.regeneration_type,
        "improvement_text": request.improvement_text,
    }


class GenerationPipeline:
    """Orchestrates one try-on generation attempt.

    Collaborators are injected so tests can substitute the model gateway and
    object storage with in-memory fakes.
    """

    def __init__(
        self,
        uow_factory,
        gateway: ModelProviderGateway,
        storage: ObjectStorage,
        settings: Settings,
    ):
        self.uow_factory = uow_factory
        self.records = GenerationRecordManager(uow_factory)
        self.resolver = ReferenceResolver(uow_factory, storage)
        self.prompts = PromptSynthesizer(gateway, self.records)
        self.advisor = PoseAdvisor(gateway)
        self.synthesizer = ImageSynthesizer(gateway, max_attempts=settings.synthesis_max_attempts)
        self.post_processor = PostProcessor(gateway)
        self.settlement = Settlement(
            uow_factory, storage, self.records, watermark=settings.watermark_enabled
        )

    async def run(self, request: GenerationRequest) -> GenerationOutcome:
        log = logger.bind(user_id=str(request.user_id))

        upload_ids = parse_upload_ids(request.upload_ids)
        if upload_ids is None:
            return GenerationFailure(FailureKind.VALIDATION, "uploadIds array is required")
        if request.regeneration_type is not None and request.regeneration_type not in REGENERATION_TYPES:
            return GenerationFailure(
                FailureKind.VALIDATION, "regenerationType must be 'feedback' or 'improvement'"
            )
        if request.improvement_text is not None and (
            not isinstance(request.improvement_text, str)
            or len(request.improvement_text) > MAX_IMPROVEMENT_TEXT_LENGTH
        ):
            return GenerationFailure(
                FailureKind.VALIDATION,
                f"improvementText must be a string of at most {MAX_IMPROVEMENT_TEXT_LENGTH} characters",
            )

        log.info("generation.started", upload_count=len(upload_ids), regeneration_type=request.regeneration_type)

        references = await self.resolver.resolve(request.user_id, upload_ids)
        if isinstance(references, GenerationFailure):
            log.info("generation.rejected", kind=references.kind.value, error=references.message)
            return references

        async with await self.uow_factory() as uow:
            overrides = await uow.pricing.get_overrides(PRICING_ACTIONS)
        cost = calculate_cost(references.profile.tools, overrides)

        if references.available_credits < cost.total:
            log.info(
                "generation.insufficient_credits",
                required=cost.total,
                available=references.available_credits,
            )
            return GenerationFailure(
                FailureKind.INSUFFICIENT_CREDITS,
                "Insufficient credits",
                details={"required": cost.total, "available": references.available_credits},
            )

        strategy = decide_background_strategy(references)
        generation = await self.records.create(
            request.user_id, input_snapshot(references, strategy, cost, request), cost.total
        )
        generation_id = generation.id

        try:
            await self.records.begin_processing(generation_id)
            outcome = await self._process(generation_id, references, strategy, cost, request)
        except Exception as e:
            log.exception("generation.unexpected_error", generation_id=str(generation_id), error=str(e))
            outcome = GenerationFailure(
                FailureKind.INTERNAL,
                INTERNAL_ERROR_MESSAGE,
                retryable=True,
                record_message=f"Internal error: {type(e).__name__}: {e}",
            )

        if isinstance(outcome, GenerationFailure):
            await self.records.fail(generation_id, outcome.record_message or outcome.message)
        return outcome

    async def _process(
        self,
        generation_id: UUID,
        references: ReferenceSet,
        strategy: BackgroundStrategy,
        cost: CostBreakdown,
        request: GenerationRequest,
    ) -> GenerationOutcome:
        prompt = await self.prompts.synthesize(
            generation_id, references, strategy, request.improvement_text
        )
        if isinstance(prompt, GenerationFailure):
            return prompt

        guidance = await self.advisor.advise(references)
        instruction = compose_instruction(prompt.text, guidance)

        image = await self.synthesizer.synthesize(generation_id, instruction, references, strategy)
        if isinstance(image, GenerationFailure):
            return image

        edited = await self.post_processor.apply(
            generation_id, image.to_payload(), references, strategy
        )

        return await self.settlement.settle(
            generation_id,
            references,
            edited,
            cost,
            prompt,
            guidance,
            request.regeneration_type,
        )
