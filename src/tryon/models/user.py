"""User entity - account holder with a prepaid credit balance."""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from tryon.core.timezone import utcnow


class User(SQLModel, table=True):
    """User owns uploads, generations and a credit balance."""

    __tablename__ = "users"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: Optional[str] = Field(default=None, max_length=255)
    credits: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
