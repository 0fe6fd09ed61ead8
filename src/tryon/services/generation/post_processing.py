"""Sequential, best-effort post-processing edits.

Edits run in a fixed order, each on the output of the previous successful one.
A failed edit is left out of the applied list and never aborts the attempt.
"""

from typing import Awaitable, Callable
from uuid import UUID

import structlog

from tryon.services.generation.costs import ADD_LOGO, CHANGE_BACKGROUND, REMOVE_BACKGROUND
from tryon.services.generation.types import BackgroundStrategy, EditedImage, ReferenceSet
from tryon.services.providers import prompts
from tryon.services.providers.gateway import ImagePayload, ImageResult, ModelProviderGateway

logger = structlog.get_logger()


class PostProcessor:
    def __init__(self, gateway: ModelProviderGateway):
        self.gateway = gateway

    async def apply(
        self,
        generation_id: UUID,
        image: ImagePayload,
        references: ReferenceSet,
        strategy: BackgroundStrategy,
    ) -> EditedImage:
        tools = references.profile.tools
        current = image
        applied: list[str] = []

        async def run(name: str, call: Callable[[ImagePayload], Awaitable[ImageResult]]) -> None:
            nonlocal current
            try:
                result = await call(current)
            except Exception as e:
                logger.warning("generation.edit_failed", generation_id=str(generation_id), edit=name, error=str(e))
                return
            if not result.usable:
                logger.warning(
                    "generation.edit_failed", generation_id=str(generation_id), edit=name, error=result.error
                )
                return
            current = result.to_payload()
            applied.append(name)

        if tools.remove_background:
            await run(
                REMOVE_BACKGROUND,
                lambda img: self.gateway.apply_edit(prompts.background_removal_instruction(), img),
            )

        if tools.add_logo.active:
            instruction = prompts.logo_insertion_instruction(tools.add_logo.position)
            logo = references.logo
            if logo is not None:
                await run(ADD_LOGO, lambda img: self.gateway.blend_images(instruction, [img, logo]))
            else:
                await run(ADD_LOGO, lambda img: self.gateway.apply_edit(instruction, img))

        if strategy is BackgroundStrategy.INTEGRATED:
            applied.append(CHANGE_BACKGROUND)
        elif strategy is BackgroundStrategy.DEFERRED_EDIT and not tools.remove_background:
            description = tools.change_background.description
            background = references.background
            if background is not None:
                instruction = prompts.background_change_instruction(description, with_reference_image=True)
                await run(
                    CHANGE_BACKGROUND,
                    lambda img: self.gateway.blend_images(instruction, [img, background]),
                )
            else:
                instruction = prompts.background_change_instruction(description)
                await run(CHANGE_BACKGROUND, lambda img: self.gateway.apply_edit(instruction, img))

        return EditedImage(image=current, applied_edits=applied)
