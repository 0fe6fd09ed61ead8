"""Credit ledger API endpoints.

- GET /api/credits/history - paginated ledger entries of the caller, newest first
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from tryon.api.dependencies import get_current_user_id, get_uow_factory

router = APIRouter(prefix="/api/credits", tags=["credits"])


class CreditTransactionResponse(BaseModel):
    id: UUID
    amount: int
    type: str
    description: Optional[str] = None
    generation_id: Optional[UUID] = Field(default=None, serialization_alias="generationId")
    created_at: datetime = Field(serialization_alias="createdAt")
    metadata: Optional[dict[str, Any]] = None


class CreditHistoryResponse(BaseModel):
    balance: int
    transactions: list[CreditTransactionResponse]
    total: int
    limit: int
    offset: int


@router.get("/history", response_model=CreditHistoryResponse, response_model_by_alias=True)
async def get_credit_history(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: UUID = Depends(get_current_user_id),
    uow_factory=Depends(get_uow_factory),
) -> CreditHistoryResponse:
    async with await uow_factory() as uow:
        user = await uow.users.get_by_id(user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        entries, total = await uow.ledger.list_for_user(user_id, limit=limit, offset=offset)

    return CreditHistoryResponse(
        balance=user.credits,
        transactions=[
            CreditTransactionResponse(
                id=entry.id,
                amount=entry.amount,
                type=entry.type,
                description=entry.description,
                generation_id=entry.generation_id,
                created_at=entry.created_at,
                metadata=entry.transaction_metadata,
            )
            for entry in entries
        ],
        total=total,
        limit=limit,
        offset=offset,
    )
