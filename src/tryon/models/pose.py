"""Pose reference entities - catalog poses and user-saved custom models."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from tryon.core.timezone import utcnow


class ModelPose(SQLModel, table=True):
    """Catalog pose a garment can be rendered onto."""

    __tablename__ = "model_poses"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    image_url: str = Field(max_length=2048)
    gender: str = Field(default="FEMALE", max_length=20)
    age_min: int = Field(default=20)
    age_max: int = Field(default=40)
    age_range: str = Field(default="TWENTIES", max_length=20)
    ethnicity: str = Field(default="MIXED", max_length=30)
    pose_category: str = Field(default="standing", max_length=50)
    pose_metadata: Optional[dict[str, Any]] = Field(
        default=None, sa_column=Column("metadata", JSON)
    )
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class SavedModel(SQLModel, table=True):
    """Custom model photo a user saved for reuse as a pose reference.

    Demographic columns are nullable; the resolver substitutes defaults.
    """

    __tablename__ = "user_models"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    image_url: str = Field(max_length=2048)
    gender: Optional[str] = Field(default=None, max_length=20)
    age_min: Optional[int] = Field(default=None)
    age_max: Optional[int] = Field(default=None)
    age_range: Optional[str] = Field(default=None, max_length=20)
    ethnicity: Optional[str] = Field(default=None, max_length=30)
    pose_category: Optional[str] = Field(default=None, max_length=50)
    pose_metadata: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
