"""Pricing and tool catalog entities."""

from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class CreditPricing(SQLModel, table=True):
    """Credit price override for one action (base_generation, ai_edit, add_logo, ...)."""

    __tablename__ = "credit_pricing"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    action_type: str = Field(max_length=50, index=True)
    credits_required: int = Field(ge=0)
    is_active: bool = Field(default=True)


class EditingTool(SQLModel, table=True):
    """Post-processing edit known to the billing catalog (remove_background, ...)."""

    __tablename__ = "ai_editing_tools"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tool_name: str = Field(max_length=50, unique=True, index=True)
    is_active: bool = Field(default=True)
