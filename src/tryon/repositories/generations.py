"""Generation repository for the try-on backend.

Provides data access methods for Generation records and orphan detection.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tryon.models.generation import Generation, GenerationStatus


class GenerationRepository:
    """Repository for Generation entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add(self, generation: Generation) -> Generation:
        """Persist new generation record to database.

        Returns:
            Persisted generation with generated ID
        """
        self.session.add(generation)
        await self.session.flush()
        return generation

    async def get_by_id(self, generation_id: UUID) -> Generation | None:
        result = await self.session.execute(
            select(Generation).where(Generation.id == generation_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def get_for_user(self, generation_id: UUID, user_id: UUID) -> Generation | None:
        """Retrieve a generation only if it belongs to ``user_id``."""
        result = await self.session.execute(
            select(Generation).where(
                Generation.id == generation_id,  # type: ignore[arg-type]
                Generation.user_id == user_id,  # type: ignore[arg-type]
            )
        )
        return result.scalar_one_or_none()

    async def get_stale_in_flight(self, older_than: datetime, limit: int = 500) -> list[Generation]:
        """Retrieve pending/processing generations not updated since ``older_than``.

        Such records belong to a request whose process or connection died
        before reaching a terminal state.

        Args:
            older_than: Cutoff timestamp (UTC, naive)
            limit: Maximum number of records to return

        Returns:
            Stale generations ordered oldest first
        """
        result = await self.session.execute(
            select(Generation)
            .where(
                Generation.status.in_(  # type: ignore[attr-defined]
                    [GenerationStatus.PENDING, GenerationStatus.PROCESSING]
                ),
                Generation.updated_at < older_than,  # type: ignore[arg-type]
            )
            .order_by(Generation.updated_at.asc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        return list(result.scalars().all())
