"""UserUpload entity - garment photo uploaded by a user."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from tryon.core.timezone import utcnow


class UserUpload(SQLModel, table=True):
    """Garment image plus categorization and pose selection metadata.

    ``upload_metadata`` layout::

        {
            "garment": {"category": "CASUAL_DRESS", "description": "..."},
            "piece_type": "upper" | "lower",
            "pose_selection": {"selected_pose_ids": ["<pose reference>"]},
        }

    A pose reference is a catalog pose id, ``original:<upload id>`` or
    ``user-model:<saved model id>``.
    """

    __tablename__ = "user_uploads"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    file_path: str = Field(max_length=1024)
    public_url: str = Field(max_length=2048)
    mime_type: str = Field(default="image/jpeg", max_length=100)
    upload_metadata: Optional[dict[str, Any]] = Field(
        default=None, sa_column=Column("metadata", JSON)
    )
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    deleted_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    @property
    def garment(self) -> dict[str, Any]:
        return (self.upload_metadata or {}).get("garment") or {}

    @property
    def piece_type(self) -> Optional[str]:
        return (self.upload_metadata or {}).get("piece_type")

    @property
    def selected_pose_id(self) -> Optional[str]:
        """First selected pose reference, accepting the legacy flat key."""
        metadata = self.upload_metadata or {}
        selected = (metadata.get("pose_selection") or {}).get("selected_pose_ids") or []
        if selected:
            return str(selected[0])
        legacy = metadata.get("selected_pose_id")
        return str(legacy) if legacy else None
