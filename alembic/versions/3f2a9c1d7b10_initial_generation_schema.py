"""initial_generation_schema

Revision ID: 3f2a9c1d7b10
Revises:
Create Date: 2025-11-04 10:12:31.208114

"""

import uuid
from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f2a9c1d7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

generation_status = sa.Enum("PENDING", "PROCESSING", "COMPLETED", "FAILED", name="generationstatus")


def upgrade() -> None:
    """Create generation pipeline tables and seed pricing and editing tools."""
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("credits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("credits >= 0", name="ck_users_credits_non_negative"),
    )

    op.create_table(
        "user_uploads",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("file_path", sa.String(length=1024), nullable=False),
        sa.Column("public_url", sa.String(length=2048), nullable=False),
        sa.Column("mime_type", sa.String(length=100), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_user_uploads_user_id", "user_uploads", ["user_id"])

    op.create_table(
        "model_poses",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("image_url", sa.String(length=2048), nullable=False),
        sa.Column("gender", sa.String(length=20), nullable=False),
        sa.Column("age_min", sa.Integer(), nullable=False),
        sa.Column("age_max", sa.Integer(), nullable=False),
        sa.Column("age_range", sa.String(length=20), nullable=False),
        sa.Column("ethnicity", sa.String(length=30), nullable=False),
        sa.Column("pose_category", sa.String(length=50), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "user_models",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("image_url", sa.String(length=2048), nullable=False),
        sa.Column("gender", sa.String(length=20), nullable=True),
        sa.Column("age_min", sa.Integer(), nullable=True),
        sa.Column("age_max", sa.Integer(), nullable=True),
        sa.Column("age_range", sa.String(length=20), nullable=True),
        sa.Column("ethnicity", sa.String(length=30), nullable=True),
        sa.Column("pose_category", sa.String(length=50), nullable=True),
        sa.Column("pose_metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_user_models_user_id", "user_models", ["user_id"])

    op.create_table(
        "image_format_presets",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("aspect_ratio", sa.String(length=10), nullable=False),
    )

    op.create_table(
        "background_presets",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("image_url", sa.String(length=2048), nullable=False),
    )

    op.create_table(
        "generation_customizations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("upload_id", sa.Uuid(), sa.ForeignKey("user_uploads.id"), nullable=False),
        sa.Column("model_height_cm", sa.Integer(), nullable=True),
        sa.Column("model_weight_kg", sa.Integer(), nullable=True),
        sa.Column("age_range", sa.String(length=20), nullable=True),
        sa.Column("body_size", sa.String(length=20), nullable=True),
        sa.Column("facial_expression", sa.String(length=50), nullable=True),
        sa.Column("hair_color", sa.String(length=50), nullable=True),
        sa.Column(
            "format_id", sa.Uuid(), sa.ForeignKey("image_format_presets.id"), nullable=True
        ),
        sa.Column("ai_tools", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_generation_customizations_upload_id",
        "generation_customizations",
        ["upload_id"],
        unique=True,
    )

    op.create_table(
        "credit_pricing",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("action_type", sa.String(length=50), nullable=False),
        sa.Column("credits_required", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_credit_pricing_action_type", "credit_pricing", ["action_type"])

    op.create_table(
        "ai_editing_tools",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tool_name", sa.String(length=50), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_ai_editing_tools_tool_name", "ai_editing_tools", ["tool_name"], unique=True)

    op.create_table(
        "generations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", generation_status, nullable=False),
        sa.Column("input_data", sa.JSON(), nullable=True),
        sa.Column("output_data", sa.JSON(), nullable=True),
        sa.Column("credits_used", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.String(length=1000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_generations_user_id", "generations", ["user_id"])
    op.create_index("ix_generations_status", "generations", ["status"])

    op.create_table(
        "ai_generated_prompts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("generation_id", sa.Uuid(), sa.ForeignKey("generations.id"), nullable=False),
        sa.Column("input_data", sa.JSON(), nullable=True),
        sa.Column("generated_prompt", sa.Text(), nullable=False),
        sa.Column("prompt_optimizer_model", sa.String(length=100), nullable=False),
        sa.Column("tokens_used", sa.Integer(), nullable=True),
        sa.Column("is_minor", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_ai_generated_prompts_generation_id", "ai_generated_prompts", ["generation_id"])

    op.create_table(
        "generation_results",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("generation_id", sa.Uuid(), sa.ForeignKey("generations.id"), nullable=False),
        sa.Column("image_url", sa.String(length=2048), nullable=False),
        sa.Column("image_public_url", sa.String(length=2048), nullable=True),
        sa.Column("thumbnail_url", sa.String(length=2048), nullable=True),
        sa.Column("thumbnail_public_url", sa.String(length=2048), nullable=True),
        sa.Column("ai_edits_applied", sa.JSON(), nullable=True),
        sa.Column("pose_compatibility_score", sa.Integer(), nullable=True),
        sa.Column("regeneration_type", sa.String(length=20), nullable=True),
        sa.Column("has_watermark", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_generation_results_generation_id", "generation_results", ["generation_id"], unique=True
    )

    op.create_table(
        "generation_ai_edits",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("generation_id", sa.Uuid(), sa.ForeignKey("generations.id"), nullable=False),
        sa.Column("tool_id", sa.Uuid(), sa.ForeignKey("ai_editing_tools.id"), nullable=False),
        sa.Column("credits_used", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_generation_ai_edits_generation_id", "generation_ai_edits", ["generation_id"])

    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "generation_id",
            sa.Uuid(),
            sa.ForeignKey("generations.id"),
            nullable=True,
            unique=True,
        ),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_credit_transactions_user_id", "credit_transactions", ["user_id"])

    tools = sa.table(
        "ai_editing_tools",
        sa.column("id", sa.Uuid()),
        sa.column("tool_name", sa.String()),
        sa.column("is_active", sa.Boolean()),
    )
    op.bulk_insert(
        tools,
        [
            {"id": uuid.UUID("6d1f4a52-0b7e-4c53-9a61-2f7c1d3e9a01"), "tool_name": "remove_background", "is_active": True},
            {"id": uuid.UUID("6d1f4a52-0b7e-4c53-9a61-2f7c1d3e9a02"), "tool_name": "change_background", "is_active": True},
            {"id": uuid.UUID("6d1f4a52-0b7e-4c53-9a61-2f7c1d3e9a03"), "tool_name": "add_logo", "is_active": True},
        ],
    )

    pricing = sa.table(
        "credit_pricing",
        sa.column("id", sa.Uuid()),
        sa.column("action_type", sa.String()),
        sa.column("credits_required", sa.Integer()),
        sa.column("is_active", sa.Boolean()),
    )
    op.bulk_insert(
        pricing,
        [
            {"id": uuid.UUID("0b9e8f3c-5a2d-4e71-8c44-7d2b6a1f0c01"), "action_type": "base_generation", "credits_required": 2, "is_active": True},
            {"id": uuid.UUID("0b9e8f3c-5a2d-4e71-8c44-7d2b6a1f0c02"), "action_type": "ai_edit", "credits_required": 1, "is_active": True},
        ],
    )


def downgrade() -> None:
    """Drop generation pipeline tables."""
    op.drop_table("credit_transactions")
    op.drop_table("generation_ai_edits")
    op.drop_table("generation_results")
    op.drop_table("ai_generated_prompts")
    op.drop_table("generations")
    op.drop_table("ai_editing_tools")
    op.drop_table("credit_pricing")
    op.drop_table("generation_customizations")
    op.drop_table("background_presets")
    op.drop_table("image_format_presets")
    op.drop_table("user_models")
    op.drop_table("model_poses")
    op.drop_table("user_uploads")
    op.drop_table("users")
    generation_status.drop(op.get_bind(), checkfirst=True)
