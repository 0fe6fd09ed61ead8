"""Durable generation record lifecycle.

Each transition runs in its own unit of work so the observed status sequence
is committed step by step: pending, processing, then completed or failed.
"""

from typing import Any, Optional
from uuid import UUID

import structlog

from tryon.models.generation import TERMINAL_STATUSES, Generation
from tryon.models.result import GeneratedPrompt
from tryon.services.generation.types import SynthesizedPrompt

logger = structlog.get_logger()


class GenerationRecordManager:
    def __init__(self, uow_factory):
        self.uow_factory = uow_factory

    async def create(self, user_id: UUID, input_snapshot: dict[str, Any], credits: int) -> Generation:
        """Create a pending record capturing the immutable input snapshot."""
        async with await self.uow_factory() as uow:
            generation = await uow.generations.add(
                Generation(user_id=user_id, input_data=input_snapshot, credits_used=credits)
            )
        logger.info("generation.record_created", generation_id=str(generation.id), user_id=str(user_id))
        return generation

    async def begin_processing(self, generation_id: UUID) -> None:
        async with await self.uow_factory() as uow:
            generation = await uow.generations.get_by_id(generation_id)
            if generation is None:
                raise LookupError(f"Generation {generation_id} disappeared")
            generation.mark_processing()

    async def fail(self, generation_id: UUID, error_message: str) -> bool:
        """Finalize a record as failed.

        Returns:
            True if the record transitioned, False if it was already terminal
        """
        async with await self.uow_factory() as uow:
            generation = await uow.generations.get_by_id(generation_id)
            if generation is None or generation.status in TERMINAL_STATUSES:
                logger.warning(
                    "generation.fail_skipped",
                    generation_id=str(generation_id),
                    status=generation.status.value if generation else None,
                )
                return False
            generation.mark_failed(error_message)

        logger.info("generation.failed", generation_id=str(generation_id), error_message=error_message)
        return True

    async def record_prompt(
        self,
        generation_id: UUID,
        prompt: SynthesizedPrompt,
        input_data: Optional[dict[str, Any]] = None,
    ) -> None:
        """Persist the final instruction for audit, ahead of image synthesis."""
        async with await self.uow_factory() as uow:
            await uow.results.add_prompt(
                GeneratedPrompt(
                    generation_id=generation_id,
                    input_data=input_data,
                    generated_prompt=prompt.text,
                    prompt_optimizer_model=prompt.model,
                    tokens_used=prompt.tokens_used,
                    is_minor=prompt.is_minor,
                )
            )
