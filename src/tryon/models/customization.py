"""Customization entities - per-shot preferences and output format presets."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from tryon.core.timezone import utcnow


class GenerationCustomization(SQLModel, table=True):
    """Customization saved against the first upload of a generation request."""

    __tablename__ = "generation_customizations"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    upload_id: UUID = Field(foreign_key="user_uploads.id", unique=True, index=True)
    model_height_cm: Optional[int] = Field(default=None)
    model_weight_kg: Optional[int] = Field(default=None)
    age_range: Optional[str] = Field(default=None, max_length=20)
    body_size: Optional[str] = Field(default=None, max_length=20)
    facial_expression: Optional[str] = Field(default=None, max_length=50)
    hair_color: Optional[str] = Field(default=None, max_length=50)
    format_id: Optional[UUID] = Field(default=None, foreign_key="image_format_presets.id")
    ai_tools: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class ImageFormatPreset(SQLModel, table=True):
    """Named output format (e.g. "Instagram Story") mapped to a provider aspect ratio."""

    __tablename__ = "image_format_presets"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=100)
    aspect_ratio: str = Field(max_length=10)


class BackgroundPreset(SQLModel, table=True):
    """Curated background image a user can pick for the change-background tool."""

    __tablename__ = "background_presets"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=100)
    category: Optional[str] = Field(default=None, max_length=50)
    image_url: str = Field(max_length=2048)
