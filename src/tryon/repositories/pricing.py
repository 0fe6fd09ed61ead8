"""Pricing repository: credit price overrides and the editing tool catalog."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tryon.models.pricing import CreditPricing, EditingTool


class PricingRepository:
    """Repository for CreditPricing and EditingTool entities."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_overrides(self, actions: list[str] | None = None) -> dict[str, int]:
        """Return active price overrides keyed by action name.

        Args:
            actions: Restrict to these action names (default: all)

        Returns:
            Mapping of action name to credits required
        """
        query = select(CreditPricing).where(CreditPricing.is_active.is_(True))  # type: ignore[attr-defined]
        if actions is not None:
            query = query.where(CreditPricing.action_type.in_(actions))  # type: ignore[attr-defined]
        result = await self.session.execute(query)
        return {row.action_type: row.credits_required for row in result.scalars().all()}

    async def get_editing_tool(self, tool_name: str) -> EditingTool | None:
        """Look up an active editing tool by name."""
        result = await self.session.execute(
            select(EditingTool).where(
                EditingTool.tool_name == tool_name,  # type: ignore[arg-type]
                EditingTool.is_active.is_(True),  # type: ignore[attr-defined]
            )
        )
        return result.scalar_one_or_none()

    async def add(self, entity: CreditPricing | EditingTool) -> CreditPricing | EditingTool:
        self.session.add(entity)
        await self.session.flush()
        return entity
