"""CreditTransaction entity - append-only audit record of balance changes."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from tryon.core.timezone import utcnow


class CreditTransaction(SQLModel, table=True):
    """Ledger entry. A generation can appear in at most one entry."""

    __tablename__ = "credit_transactions"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    generation_id: Optional[UUID] = Field(
        default=None, foreign_key="generations.id", unique=True
    )
    amount: int
    type: str = Field(max_length=50)
    description: Optional[str] = Field(default=None, max_length=500)
    transaction_metadata: Optional[dict[str, Any]] = Field(
        default=None, sa_column=Column("metadata", JSON)
    )
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
