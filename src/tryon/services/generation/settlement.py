"""Artifact persistence and credit settlement.

Order matters: nothing here debits the user until the primary image is
stored, and the debit commits together with the ``completed`` transition.
The result row, edit rows and ledger entry are only written once that
debit has gone through, so an unpaid attempt never exposes its artifact.
They are best-effort and only logged on failure.
"""

import asyncio
from typing import Optional
from uuid import UUID

import structlog
from PIL import UnidentifiedImageError
from sqlalchemy.exc import SQLAlchemyError

from tryon.models.ledger import CreditTransaction
from tryon.models.result import GenerationEdit, GenerationResult
from tryon.services.exceptions import ServiceError
from tryon.services.generation.costs import CostBreakdown
from tryon.services.generation.records import GenerationRecordManager
from tryon.services.generation.types import (
    EditedImage,
    FailureKind,
    GenerationFailure,
    GenerationOutcome,
    GenerationSucceeded,
    PoseGuidance,
    ReferenceSet,
    SynthesizedPrompt,
)
from tryon.services.imaging import add_watermark, create_thumbnail
from tryon.services.providers.gateway import ImagePayload
from tryon.services.storage.base import ObjectStorage, StoredObject

logger = structlog.get_logger()

LEDGER_TYPE_GENERATION = "generation"
UPLOAD_FAILED_MESSAGE = "We couldn't save the generated image. Please try again."


class _BalanceTooLow(Exception):
    """Conditional debit matched no row; the surrounding transaction rolls back."""


class Settlement:
    def __init__(
        self,
        uow_factory,
        storage: ObjectStorage,
        records: GenerationRecordManager,
        watermark: bool = False,
    ):
        self.uow_factory = uow_factory
        self.storage = storage
        self.records = records
        self.watermark = watermark

    async def settle(
        self,
        generation_id: UUID,
        references: ReferenceSet,
        edited: EditedImage,
        cost: CostBreakdown,
        prompt: SynthesizedPrompt,
        guidance: PoseGuidance,
        regeneration_type: Optional[str] = None,
    ) -> GenerationOutcome:
        log = logger.bind(generation_id=str(generation_id), user_id=str(references.user_id))
        user_id = references.user_id

        # Regenerations and improvements are delivered clean
        final_image = edited.image
        has_watermark = False
        if self.watermark and regeneration_type is None:
            marked = await self._watermark(edited.image, log)
            if marked is not None:
                final_image, has_watermark = marked, True

        thumbnail_bytes = await self._make_thumbnail(final_image, log)

        try:
            stored = await self.storage.upload_generated_image(user_id, generation_id, final_image)
        except ServiceError as e:
            log.error("generation.upload_failed", error=str(e))
            return GenerationFailure(
                FailureKind.PERSISTENCE,
                UPLOAD_FAILED_MESSAGE,
                retryable=True,
                record_message=f"Failed to upload image: {e}",
            )

        thumbnail: Optional[StoredObject] = None
        if thumbnail_bytes is not None:
            try:
                thumbnail = await self.storage.upload_thumbnail(
                    user_id, generation_id, ImagePayload(data=thumbnail_bytes, mime_type="image/jpeg")
                )
            except ServiceError as e:
                log.warning("generation.thumbnail_upload_failed", error=str(e))

        output = {
            "image_path": stored.path,
            "thumbnail_path": thumbnail.path if thumbnail else None,
            "ai_edits_applied": edited.applied_edits,
            "pose_compatibility_score": guidance.score,
            "prompt_model": prompt.model,
            "tokens_used": prompt.tokens_used,
            "is_minor": prompt.is_minor,
            "has_watermark": has_watermark,
        }
        try:
            async with await self.uow_factory() as uow:
                generation = await uow.generations.get_by_id(generation_id)
                if generation is None:
                    raise LookupError(f"Generation {generation_id} disappeared")
                generation.mark_completed(output)
                remaining = await uow.users.debit_credits(user_id, cost.total)
                if remaining is None:
                    raise _BalanceTooLow()
        except _BalanceTooLow:
            async with await self.uow_factory() as uow:
                user = await uow.users.get_by_id(user_id)
                available = user.credits if user else 0
            log.warning("generation.debit_rejected", required=cost.total, available=available)
            return GenerationFailure(
                FailureKind.INSUFFICIENT_CREDITS,
                "Insufficient credits",
                details={"required": cost.total, "available": available},
                record_message="Insufficient credits at settlement",
            )

        await self._write_result(
            generation_id, stored, thumbnail, edited, guidance, regeneration_type, has_watermark, log
        )
        await self._write_edits(generation_id, edited.applied_edits, cost, log)
        await self._append_ledger_entry(generation_id, references, cost, log)

        log.info(
            "generation.completed",
            credits_used=cost.total,
            credits_remaining=remaining,
            ai_edits_applied=edited.applied_edits,
            has_watermark=has_watermark,
        )
        return GenerationSucceeded(
            generation_id=generation_id,
            preview_url=stored.public_url,
            thumbnail_url=thumbnail.public_url if thumbnail else None,
            credits_used=cost.total,
            credits_remaining=remaining,
            ai_edits_applied=list(edited.applied_edits),
        )

    async def _watermark(self, image: ImagePayload, log) -> Optional[ImagePayload]:
        try:
            data = await asyncio.to_thread(add_watermark, image.data)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            log.warning("generation.watermark_failed", error=str(e))
            return None
        return ImagePayload(data=data, mime_type="image/png")

    async def _make_thumbnail(self, image: ImagePayload, log) -> Optional[bytes]:
        try:
            return await asyncio.to_thread(create_thumbnail, image.data)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            log.warning("generation.thumbnail_failed", error=str(e))
            return None

    async def _write_result(
        self,
        generation_id: UUID,
        stored: StoredObject,
        thumbnail: Optional[StoredObject],
        edited: EditedImage,
        guidance: PoseGuidance,
        regeneration_type: Optional[str],
        has_watermark: bool,
        log,
    ) -> None:
        try:
            async with await self.uow_factory() as uow:
                await uow.results.add_result(
                    GenerationResult(
                        generation_id=generation_id,
                        image_url=stored.path,
                        image_public_url=stored.public_url,
                        thumbnail_url=thumbnail.path if thumbnail else None,
                        thumbnail_public_url=thumbnail.public_url if thumbnail else None,
                        ai_edits_applied=list(edited.applied_edits),
                        pose_compatibility_score=guidance.score,
                        regeneration_type=regeneration_type,
                        has_watermark=has_watermark,
                        result_metadata={
                            "pose_guidance": guidance.text,
                            "mime_type": "image/png" if has_watermark else edited.image.mime_type,
                        },
                    )
                )
        except SQLAlchemyError as e:
            log.error("generation.result_record_failed", error=str(e))

    async def _write_edits(
        self, generation_id: UUID, applied_edits: list[str], cost: CostBreakdown, log
    ) -> None:
        for edit in applied_edits:
            try:
                async with await self.uow_factory() as uow:
                    tool = await uow.pricing.get_editing_tool(edit)
                    if tool is None:
                        log.warning("generation.edit_record_skipped", edit=edit, reason="unknown_tool")
                        continue
                    await uow.results.add_edit(
                        GenerationEdit(
                            generation_id=generation_id,
                            tool_id=tool.id,
                            credits_used=cost.edits.get(edit, 0),
                        )
                    )
            except SQLAlchemyError as e:
                log.warning("generation.edit_record_skipped", edit=edit, reason="write_failed", error=str(e))

    async def _append_ledger_entry(
        self, generation_id: UUID, references: ReferenceSet, cost: CostBreakdown, log
    ) -> None:
        edit_count = len(cost.edits)
        description = "Image generation" + (f" with {edit_count} AI edit(s)" if edit_count else "")
        try:
            async with await self.uow_factory() as uow:
                await uow.ledger.append(
                    CreditTransaction(
                        user_id=references.user_id,
                        generation_id=generation_id,
                        amount=-cost.total,
                        type=LEDGER_TYPE_GENERATION,
                        description=description,
                        transaction_metadata={
                            "generation_id": str(generation_id),
                            "upload_ids": [str(upload.id) for upload in references.uploads],
                            "credits_breakdown": cost.as_dict(),
                            "customization": references.profile.snapshot(),
                        },
                    )
                )
        except SQLAlchemyError as e:
            log.error("generation.ledger_entry_failed", error=str(e))
