"""Unit of Work for the try-on backend.

Provides transaction management with automatic commit/rollback and access to all repositories.
"""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tryon.repositories.customizations import CustomizationRepository
from tryon.repositories.generations import GenerationRepository
from tryon.repositories.ledger import LedgerRepository
from tryon.repositories.poses import PoseRepository
from tryon.repositories.pricing import PricingRepository
from tryon.repositories.results import ResultRepository
from tryon.repositories.uploads import UploadRepository
from tryon.repositories.users import UserRepository

logger = structlog.get_logger()


class UnitOfWork:
    """Transaction scope exposing every repository over one session.

    Example:
        async with await uow_factory() as uow:
            generation = await uow.generations.get_by_id(generation_id)
            generation.mark_processing()
            # Commits on clean exit, rolls back on exception
    """

    def __init__(self, session: AsyncSession):
        self.session = session

        self.users = UserRepository(session)
        self.uploads = UploadRepository(session)
        self.poses = PoseRepository(session)
        self.customizations = CustomizationRepository(session)
        self.pricing = PricingRepository(session)
        self.generations = GenerationRepository(session)
        self.results = ResultRepository(session)
        self.ledger = LedgerRepository(session)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Commit on success, roll back on exception, then release the session.

        Returns:
            False: exceptions always propagate after rollback
        """
        try:
            if exc_type is None:
                await self.session.commit()
                logger.debug("transaction.committed")
            else:
                await self.session.rollback()
                logger.info("transaction.rolled_back", exc_type=exc_type.__name__)
        finally:
            await self.session.close()

        return False


def create_uow_factory(session_factory: async_sessionmaker[AsyncSession]):
    """Create a factory function that produces UnitOfWork instances.

    Args:
        session_factory: SQLAlchemy async session factory

    Returns:
        Async callable that creates a UnitOfWork on a fresh session

    Example:
        uow_factory = create_uow_factory(setup_db_session(db_url))

        async with await uow_factory() as uow:
            await uow.generations.add(generation)
    """

    async def _create_uow():
        session = session_factory()
        return UnitOfWork(session)

    return _create_uow
