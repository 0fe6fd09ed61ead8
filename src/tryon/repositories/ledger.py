"""Credit ledger repository (append-only)."""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tryon.models.ledger import CreditTransaction


class LedgerRepository:
    """Repository for CreditTransaction entities.

    Entries are only ever appended; the balance on ``users.credits`` is the
    source of truth.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, entry: CreditTransaction) -> CreditTransaction:
        """Append a ledger entry."""
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_by_generation(self, generation_id: UUID) -> list[CreditTransaction]:
        result = await self.session.execute(
            select(CreditTransaction).where(
                CreditTransaction.generation_id == generation_id  # type: ignore[arg-type]
            )
        )
        return list(result.scalars().all())

    async def list_for_user(
        self, user_id: UUID, limit: int = 20, offset: int = 0
    ) -> tuple[list[CreditTransaction], int]:
        """Retrieve a page of a user's ledger entries, newest first.

        Returns:
            Tuple of (entries for this page, total entries for the user)
        """
        total = await self.session.scalar(
            select(func.count())
            .select_from(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)  # type: ignore[arg-type]
        )
        result = await self.session.execute(
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)  # type: ignore[arg-type]
            .order_by(CreditTransaction.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), int(total or 0)
