"""End-to-end generation pipeline tests with fake provider and storage.

Each test checks both the returned outcome and the durable state: the
generation record, the balance, the audit rows and the ledger.
"""

import io
from uuid import uuid4

import pytest
from PIL import Image
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from tryon.core.config import Settings
from tryon.models import BackgroundPreset, CreditTransaction, Generation, GenerationStatus
from tryon.repositories.ledger import LedgerRepository
from tryon.services.generation import (
    FailureKind,
    GenerationFailure,
    GenerationPipeline,
    GenerationRequest,
    GenerationSucceeded,
)
from tryon.services.generation.prompt_synthesis import MINOR_TEMPLATE_MODEL
from tryon.services.generation.synthesis import SYNTHESIS_RETRY_MESSAGE
from tryon.services.providers.gateway import ImageResult, PromptResult

LOGO_URI = "data:image/png;base64,iVBORw0KGgo="


def _png(color: tuple[int, int, int], size: tuple[int, int] = (160, 200)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


SYNTHESIZED_PNG = _png((10, 120, 200))


async def load_state(uow_factory, user_id):
    async with await uow_factory() as uow:
        user = await uow.users.get_by_id(user_id)
        generations = list(
            (await uow.session.execute(select(Generation).where(Generation.user_id == user_id))).scalars().all()
        )
        ledger = list(
            (
                await uow.session.execute(
                    select(CreditTransaction).where(CreditTransaction.user_id == user_id)
                )
            )
            .scalars()
            .all()
        )
    return user, generations, ledger


def request_for(seeded, **kwargs) -> GenerationRequest:
    return GenerationRequest(user_id=seeded.user.id, upload_ids=seeded.upload_ids, **kwargs)


@pytest.mark.asyncio
async def test_successful_generation_settles_once(pipeline, uow_factory, gateway, storage, seed):
    seeded = await seed(credits=10)

    outcome = await pipeline.run(request_for(seeded))

    assert isinstance(outcome, GenerationSucceeded)
    body = outcome.to_body()
    assert body["success"] is True
    assert body["creditsUsed"] == 2
    assert body["creditsRemaining"] == 8
    assert body["aiEditsApplied"] == []
    assert body["previewUrl"].startswith("https://storage.test/")
    assert body["thumbnailUrl"].endswith("_thumb.jpg")

    user, generations, ledger = await load_state(uow_factory, seeded.user.id)
    assert user.credits == 8
    assert len(generations) == 1
    generation = generations[0]
    assert generation.status == GenerationStatus.COMPLETED
    assert generation.credits_used == 2
    assert generation.input_data["upload_ids"] == seeded.upload_ids
    assert generation.input_data["credits_breakdown"]["total"] == 2
    assert generation.output_data["pose_compatibility_score"] == 85

    assert len(ledger) == 1
    assert ledger[0].amount == -2
    assert ledger[0].type == "generation"
    assert ledger[0].generation_id == generation.id
    assert ledger[0].transaction_metadata["credits_breakdown"]["baseGeneration"] == 2

    async with await uow_factory() as uow:
        prompts = await uow.results.get_prompts(generation.id)
        result = await uow.results.get_result(generation.id)
    assert prompts[0].prompt_optimizer_model == "fake-optimizer"
    assert prompts[0].is_minor is False
    assert result.image_public_url == body["previewUrl"]
    assert result.pose_compatibility_score == 85

    instruction = gateway.synthesis_calls[0]["instruction"]
    assert instruction.startswith(gateway.prompt_result.prompt)
    assert "High compatibility (85/100)" in instruction
    assert len(storage.uploads) == 2


@pytest.mark.asyncio
async def test_missing_upload_ids_rejected_without_side_effects(pipeline, uow_factory, gateway, seed):
    seeded = await seed()

    for raw in (None, [], "abc", ["not-a-uuid"]):
        outcome = await pipeline.run(GenerationRequest(user_id=seeded.user.id, upload_ids=raw))
        assert outcome.status_code == 400
        assert outcome.to_body() == {"error": "uploadIds array is required"}

    outcome = await pipeline.run(request_for(seeded, regeneration_type="bogus"))
    assert outcome.status_code == 400

    _, generations, _ = await load_state(uow_factory, seeded.user.id)
    assert generations == []
    assert gateway.total_calls == 0


@pytest.mark.asyncio
async def test_insufficient_credits_creates_no_record(pipeline, uow_factory, gateway, seed):
    seeded = await seed(credits=2, ai_tools={"removeBackground": True})

    outcome = await pipeline.run(request_for(seeded))

    assert outcome.status_code == 402
    assert outcome.to_body() == {"error": "Insufficient credits", "required": 3, "available": 2}

    user, generations, ledger = await load_state(uow_factory, seeded.user.id)
    assert user.credits == 2
    assert generations == []
    assert ledger == []
    assert gateway.total_calls == 0


@pytest.mark.asyncio
async def test_synthesis_failure_fails_record_without_charge(pipeline, uow_factory, gateway, seed):
    seeded = await seed(credits=10)
    gateway.synthesis_results = [
        ImageResult(success=False, error="provider error"),
        ImageResult(success=False, error="provider error again"),
    ]

    outcome = await pipeline.run(request_for(seeded))

    assert outcome.status_code == 502
    assert outcome.to_body() == {"error": SYNTHESIS_RETRY_MESSAGE}

    user, generations, ledger = await load_state(uow_factory, seeded.user.id)
    assert user.credits == 10
    assert ledger == []
    assert generations[0].status == GenerationStatus.FAILED
    assert generations[0].error_message == "provider error again"

    # The instruction is kept for audit even though synthesis failed
    async with await uow_factory() as uow:
        assert len(await uow.results.get_prompts(generations[0].id)) == 1
        assert await uow.results.get_result(generations[0].id) is None


@pytest.mark.asyncio
async def test_content_safety_block_is_retryable(pipeline, uow_factory, gateway, seed):
    seeded = await seed()
    gateway.prompt_result = PromptResult(success=False, error="PROHIBITED_CONTENT")

    outcome = await pipeline.run(request_for(seeded))

    assert isinstance(outcome, GenerationFailure)
    assert outcome.kind is FailureKind.CONTENT_SAFETY
    assert outcome.to_body()["retryable"] is True
    assert gateway.synthesis_calls == []

    _, generations, _ = await load_state(uow_factory, seeded.user.id)
    assert generations[0].status == GenerationStatus.FAILED
    assert "content safety" in generations[0].error_message


@pytest.mark.asyncio
async def test_minor_subject_uses_fixed_template(pipeline, uow_factory, gateway, seed):
    seeded = await seed(pose_age_min=12, pose_age_range="TEENS")

    outcome = await pipeline.run(request_for(seeded))

    assert isinstance(outcome, GenerationSucceeded)
    assert gateway.briefs == []
    async with await uow_factory() as uow:
        prompts = await uow.results.get_prompts(outcome.generation_id)
    assert prompts[0].is_minor is True
    assert prompts[0].prompt_optimizer_model == MINOR_TEMPLATE_MODEL


@pytest.mark.asyncio
async def test_upload_failure_is_retryable_and_uncharged(pipeline, uow_factory, storage, seed):
    seeded = await seed(credits=10)
    storage.fail_uploads = True

    outcome = await pipeline.run(request_for(seeded))

    assert outcome.status_code == 500
    assert outcome.to_body()["retryable"] is True

    user, generations, ledger = await load_state(uow_factory, seeded.user.id)
    assert user.credits == 10
    assert ledger == []
    assert generations[0].status == GenerationStatus.FAILED
    assert generations[0].error_message.startswith("Failed to upload image")


@pytest.mark.asyncio
async def test_thumbnail_failure_does_not_fail_generation(pipeline, storage, seed):
    seeded = await seed()
    storage.fail_thumbnails = True

    outcome = await pipeline.run(request_for(seeded))

    assert isinstance(outcome, GenerationSucceeded)
    assert outcome.thumbnail_url is None


@pytest.mark.asyncio
async def test_failed_edit_still_charges_requested_tools(pipeline, uow_factory, gateway, seed):
    seeded = await seed(
        credits=10,
        ai_tools={"removeBackground": True, "addLogo": {"enabled": True, "logo": LOGO_URI}},
    )
    gateway.edit_failures.add("remove_background")

    outcome = await pipeline.run(request_for(seeded))

    assert isinstance(outcome, GenerationSucceeded)
    assert outcome.ai_edits_applied == ["add_logo"]
    assert outcome.credits_used == 4
    assert outcome.credits_remaining == 6

    async with await uow_factory() as uow:
        edits = await uow.results.get_edits(outcome.generation_id)
        logo_tool = await uow.pricing.get_editing_tool("add_logo")
    assert [edit.tool_id for edit in edits] == [logo_tool.id]
    assert edits[0].credits_used == 1


@pytest.mark.asyncio
async def test_balance_drained_before_settlement(uow_factory, gateway, storage, settings, seed):
    """A concurrent spend between the pre-check and settlement is caught by the conditional debit."""
    seeded = await seed(credits=2)

    class DrainingStorage(type(storage)):
        async def upload_generated_image(self, owner_id, generation_id, image):
            async with await uow_factory() as uow:
                await uow.users.debit_credits(owner_id, 2)
            return await super().upload_generated_image(owner_id, generation_id, image)

    pipeline = GenerationPipeline(uow_factory, gateway, DrainingStorage(), settings)

    outcome = await pipeline.run(request_for(seeded))

    assert outcome.status_code == 402
    assert outcome.to_body() == {"error": "Insufficient credits", "required": 2, "available": 0}

    user, generations, ledger = await load_state(uow_factory, seeded.user.id)
    assert user.credits == 0
    assert ledger == []
    assert generations[0].status == GenerationStatus.FAILED

    # The stored image was never paid for, so no result or edit rows point at it
    async with await uow_factory() as uow:
        assert await uow.results.get_result(generations[0].id) is None
        assert await uow.results.get_edits(generations[0].id) == []


@pytest.mark.asyncio
async def test_ledger_failure_does_not_fail_paid_generation(pipeline, uow_factory, seed, monkeypatch):
    seeded = await seed(credits=5)

    async def broken_append(self, entry):
        raise OperationalError("INSERT INTO credit_transactions", {}, Exception("disk full"))

    monkeypatch.setattr(LedgerRepository, "append", broken_append)

    outcome = await pipeline.run(request_for(seeded))

    assert isinstance(outcome, GenerationSucceeded)
    user, generations, ledger = await load_state(uow_factory, seeded.user.id)
    assert user.credits == 3
    assert generations[0].status == GenerationStatus.COMPLETED
    assert ledger == []


@pytest.mark.asyncio
async def test_unexpected_error_fails_record(pipeline, uow_factory, gateway, seed, monkeypatch):
    seeded = await seed(credits=5)

    async def explode(*args, **kwargs):
        raise RuntimeError("socket closed")

    monkeypatch.setattr(gateway, "synthesize_image", explode)

    outcome = await pipeline.run(request_for(seeded))

    assert outcome.kind is FailureKind.INTERNAL
    assert outcome.status_code == 500
    assert outcome.retryable is True

    user, generations, _ = await load_state(uow_factory, seeded.user.id)
    assert user.credits == 5
    assert generations[0].status == GenerationStatus.FAILED
    assert "RuntimeError" in generations[0].error_message


@pytest.mark.asyncio
async def test_unknown_uploads_rejected_before_record(pipeline, uow_factory, seed):
    seeded = await seed()

    outcome = await pipeline.run(GenerationRequest(user_id=seeded.user.id, upload_ids=[str(uuid4())]))

    assert outcome.status_code == 404
    _, generations, _ = await load_state(uow_factory, seeded.user.id)
    assert generations == []


@pytest.mark.asyncio
async def test_integrated_background_composited_in_synthesis(pipeline, uow_factory, gateway, storage, seed):
    preset_id = uuid4()
    seeded = await seed(
        credits=5,
        ai_tools={
            "changeBackground": {
                "enabled": True,
                "selection": {"type": "preset", "presetId": str(preset_id), "presetName": "Loft", "mode": "integrated"},
            }
        },
    )
    async with await uow_factory() as uow:
        await uow.customizations.add(
            BackgroundPreset(id=preset_id, name="Loft", image_url="https://storage.test/bg/loft.png")
        )

    outcome = await pipeline.run(request_for(seeded))

    assert isinstance(outcome, GenerationSucceeded)
    call = gateway.synthesis_calls[0]
    assert len(call["garments"]) == 1
    assert call["background"] is not None
    assert outcome.ai_edits_applied == ["change_background"]
    assert gateway.blend_calls == []
    assert outcome.credits_used == 3
    assert outcome.credits_remaining == 2
    assert gateway.briefs[0].background["has_reference_image"] is True


@pytest.mark.asyncio
async def test_logo_failure_keeps_background_removal(pipeline, uow_factory, gateway, seed):
    seeded = await seed(
        credits=10,
        ai_tools={"removeBackground": True, "addLogo": {"enabled": True, "logo": LOGO_URI}},
    )
    gateway.edit_failures.add("add_logo")

    outcome = await pipeline.run(request_for(seeded))

    assert isinstance(outcome, GenerationSucceeded)
    assert outcome.ai_edits_applied == ["remove_background"]
    _, generations, _ = await load_state(uow_factory, seeded.user.id)
    assert generations[0].status == GenerationStatus.COMPLETED


@pytest.mark.asyncio
@pytest.mark.parametrize("regeneration_type, watermarked", [(None, True), ("improvement", False)])
async def test_watermark_skipped_for_refinements(
    uow_factory, gateway, storage, seed, regeneration_type, watermarked
):
    seeded = await seed(credits=5)
    settings = Settings(WATERMARK_ENABLED=True)  # type: ignore[call-arg]
    gateway.synthesis_results = [ImageResult(success=True, image_bytes=SYNTHESIZED_PNG, mime_type="image/png")]
    pipeline = GenerationPipeline(uow_factory, gateway, storage, settings)

    outcome = await pipeline.run(request_for(seeded, regeneration_type=regeneration_type))

    assert isinstance(outcome, GenerationSucceeded)
    stored = storage.uploads[f"{seeded.user.id}/generations/{outcome.generation_id}.png"]
    assert (stored.data != SYNTHESIZED_PNG) is watermarked

    async with await uow_factory() as uow:
        result = await uow.results.get_result(outcome.generation_id)
        generation = await uow.generations.get_by_id(outcome.generation_id)
    assert result.has_watermark is watermarked
    assert result.regeneration_type == regeneration_type
    assert generation.output_data["has_watermark"] is watermarked


@pytest.mark.asyncio
async def test_watermark_disabled_by_default(pipeline, uow_factory, gateway, storage, seed):
    seeded = await seed(credits=5)
    gateway.synthesis_results = [ImageResult(success=True, image_bytes=SYNTHESIZED_PNG, mime_type="image/png")]

    outcome = await pipeline.run(request_for(seeded))

    stored = storage.uploads[f"{seeded.user.id}/generations/{outcome.generation_id}.png"]
    assert stored.data == SYNTHESIZED_PNG
    async with await uow_factory() as uow:
        assert (await uow.results.get_result(outcome.generation_id)).has_watermark is False
