"""Generation API endpoints.

- POST /api/ai/generate-image - run one try-on generation attempt
- GET /api/generations/{generation_id} - read the status of an attempt
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from tryon.api.dependencies import get_current_user_id, get_pipeline, get_uow_factory
from tryon.models import GenerationStatus
from tryon.services.generation import GenerationPipeline, GenerationRequest

logger = structlog.get_logger()
router = APIRouter(tags=["generations"])


class GenerateImageRequest(BaseModel):
    """Inbound generation request.

    Every field is accepted loosely and validated by the pipeline so that a
    missing or malformed value is reported as 400 like every other validation
    failure.
    """

    model_config = ConfigDict(populate_by_name=True)

    upload_ids: Any = Field(default=None, alias="uploadIds")
    regeneration_type: Any = Field(default=None, alias="regenerationType")
    improvement_text: Any = Field(default=None, alias="improvementText")


class GenerationStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    status: str
    credits_used: int = Field(serialization_alias="creditsUsed")
    error_message: Optional[str] = Field(default=None, serialization_alias="errorMessage")
    created_at: datetime = Field(serialization_alias="createdAt")
    completed_at: Optional[datetime] = Field(default=None, serialization_alias="completedAt")
    preview_url: Optional[str] = Field(default=None, serialization_alias="previewUrl")
    thumbnail_url: Optional[str] = Field(default=None, serialization_alias="thumbnailUrl")
    ai_edits_applied: list[str] = Field(default_factory=list, serialization_alias="aiEditsApplied")


@router.post("/api/ai/generate-image")
async def generate_image(
    payload: GenerateImageRequest,
    user_id: UUID = Depends(get_current_user_id),
    pipeline: GenerationPipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Run the generation pipeline for the caller and map its outcome to HTTP.

    Returns:
        200 with the stored image URLs and remaining balance, or the failure's
        status code (400, 402, 403, 404, 500, 502) with ``{"error": ...}``
    """
    outcome = await pipeline.run(
        GenerationRequest(
            user_id=user_id,
            upload_ids=payload.upload_ids,
            regeneration_type=payload.regeneration_type,
            improvement_text=payload.improvement_text,
        )
    )
    return JSONResponse(status_code=outcome.status_code, content=outcome.to_body())


@router.get("/api/generations/{generation_id}", response_model=GenerationStatusResponse, response_model_by_alias=True)
async def get_generation(
    generation_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    uow_factory=Depends(get_uow_factory),
) -> GenerationStatusResponse:
    """Return one of the caller's generations.

    Raises:
        HTTPException: 404 if it does not exist or belongs to another user
    """
    async with await uow_factory() as uow:
        generation = await uow.generations.get_for_user(generation_id, user_id)
        if generation is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Generation not found")
        result = await uow.results.get_result(generation_id)

    # Artifacts are only handed out for attempts that were paid for
    if generation.status != GenerationStatus.COMPLETED:
        result = None

    return GenerationStatusResponse(
        id=generation.id,
        status=generation.status.value,
        credits_used=generation.credits_used,
        error_message=generation.error_message,
        created_at=generation.created_at,
        completed_at=generation.completed_at,
        preview_url=result.image_public_url if result else None,
        thumbnail_url=result.thumbnail_public_url if result else None,
        ai_edits_applied=list(result.ai_edits_applied or []) if result else [],
    )
