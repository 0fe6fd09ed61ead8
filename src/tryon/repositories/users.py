"""User repository for the try-on backend.

Holds the only shared mutable resource of the pipeline: the credit balance.
"""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tryon.models.user import User


class UserRepository:
    """Repository for User entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def get_by_id(self, user_id: UUID) -> User | None:
        """Retrieve user by UUID.

        Returns:
            User if found, None otherwise
        """
        result = await self.session.execute(select(User).where(User.id == user_id))  # type: ignore[arg-type]
        return result.scalar_one_or_none()

    async def add(self, user: User) -> User:
        """Persist new user to database."""
        self.session.add(user)
        await self.session.flush()
        return user

    async def debit_credits(self, user_id: UUID, amount: int) -> int | None:
        """Atomically decrement a user's balance if it covers ``amount``.

        Issues a single conditional UPDATE, so concurrent debits for the same
        user cannot both read a stale balance.

        Args:
            user_id: User to charge
            amount: Credits to remove (non-negative)

        Returns:
            New balance, or None if the user does not exist or the balance is
            lower than ``amount`` (nothing is changed in that case)
        """
        if amount < 0:
            raise ValueError("amount must be non-negative")

        result = await self.session.execute(
            update(User)
            .where(User.id == user_id, User.credits >= amount)  # type: ignore[arg-type]
            .values(credits=User.credits - amount)
            .returning(User.credits)
        )
        return result.scalar_one_or_none()
