"""Generation output entities: audit prompt, result artifact, applied edits."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, DateTime, Text
from sqlmodel import Field, SQLModel

from tryon.core.timezone import utcnow


class GeneratedPrompt(SQLModel, table=True):
    """Final generation instruction persisted for audit before image synthesis."""

    __tablename__ = "ai_generated_prompts"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    generation_id: UUID = Field(foreign_key="generations.id", index=True)
    input_data: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    generated_prompt: str = Field(sa_column=Column(Text, nullable=False))
    prompt_optimizer_model: str = Field(max_length=100)
    tokens_used: Optional[int] = Field(default=None)
    is_minor: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class GenerationResult(SQLModel, table=True):
    """Stored artifact of a completed generation."""

    __tablename__ = "generation_results"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    generation_id: UUID = Field(foreign_key="generations.id", unique=True, index=True)
    image_url: str = Field(max_length=2048)
    image_public_url: Optional[str] = Field(default=None, max_length=2048)
    thumbnail_url: Optional[str] = Field(default=None, max_length=2048)
    thumbnail_public_url: Optional[str] = Field(default=None, max_length=2048)
    ai_edits_applied: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    pose_compatibility_score: Optional[int] = Field(default=None)
    regeneration_type: Optional[str] = Field(default=None, max_length=20)
    has_watermark: bool = Field(default=False)
    result_metadata: Optional[dict[str, Any]] = Field(
        default=None, sa_column=Column("metadata", JSON)
    )
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))


class GenerationEdit(SQLModel, table=True):
    """One post-processing edit that the provider actually applied."""

    __tablename__ = "generation_ai_edits"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    generation_id: UUID = Field(foreign_key="generations.id", index=True)
    tool_id: UUID = Field(foreign_key="ai_editing_tools.id")
    credits_used: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
