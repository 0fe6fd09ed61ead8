"""Generation entity - one end-to-end attempt to produce a try-on image."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from tryon.core.timezone import utcnow


class GenerationStatus(str, Enum):
    """Generation lifecycle status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (GenerationStatus.COMPLETED, GenerationStatus.FAILED)


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid generation state transition."""

    pass


class Generation(SQLModel, table=True):
    """Generation record with a linear lifecycle.

    pending -> processing -> completed | failed. Terminal records are never
    mutated again.
    """

    __tablename__ = "generations"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    status: GenerationStatus = Field(default=GenerationStatus.PENDING, index=True)
    input_data: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    output_data: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    credits_used: int = Field(default=0, ge=0)
    error_message: Optional[str] = Field(default=None, max_length=1000)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    completed_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    def mark_processing(self) -> None:
        """Transition from pending to processing.

        Raises:
            InvalidStateTransition: If current status is not pending
        """
        if self.status != GenerationStatus.PENDING:
            raise InvalidStateTransition(
                f"Cannot mark processing from {self.status.value}. "
                "Generation must be in pending state."
            )
        self.status = GenerationStatus.PROCESSING
        self.updated_at = utcnow()

    def mark_completed(self, output_data: dict[str, Any]) -> None:
        """Transition from processing to completed.

        Args:
            output_data: Output snapshot (token usage, applied edits, pose score)

        Raises:
            InvalidStateTransition: If current status is not processing
        """
        if self.status != GenerationStatus.PROCESSING:
            raise InvalidStateTransition(
                f"Cannot mark completed from {self.status.value}. "
                "Generation must be in processing state."
            )
        self.output_data = output_data
        self.status = GenerationStatus.COMPLETED
        self.updated_at = self.completed_at = utcnow()

    def mark_failed(self, error_message: str) -> None:
        """Transition from any non-terminal state to failed.

        Args:
            error_message: Human-readable reason, always recorded

        Raises:
            InvalidStateTransition: If current status is already terminal
            ValueError: If error_message is empty
        """
        if self.status in TERMINAL_STATUSES:
            raise InvalidStateTransition(
                f"Cannot mark failed from terminal state {self.status.value}."
            )
        if not error_message:
            raise ValueError("error_message is required")
        self.error_message = error_message[:1000]
        self.status = GenerationStatus.FAILED
        self.updated_at = self.completed_at = utcnow()
