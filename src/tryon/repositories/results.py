"""Repository for generation outputs: audit prompts, results and applied edits."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tryon.models.result import GeneratedPrompt, GenerationEdit, GenerationResult


class ResultRepository:
    """Write-mostly repository used by the generation pipeline."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_prompt(self, prompt: GeneratedPrompt) -> GeneratedPrompt:
        self.session.add(prompt)
        await self.session.flush()
        return prompt

    async def add_result(self, result: GenerationResult) -> GenerationResult:
        self.session.add(result)
        await self.session.flush()
        return result

    async def add_edit(self, edit: GenerationEdit) -> GenerationEdit:
        self.session.add(edit)
        await self.session.flush()
        return edit

    async def get_prompts(self, generation_id: UUID) -> list[GeneratedPrompt]:
        result = await self.session.execute(
            select(GeneratedPrompt).where(GeneratedPrompt.generation_id == generation_id)  # type: ignore[arg-type]
        )
        return list(result.scalars().all())

    async def get_result(self, generation_id: UUID) -> GenerationResult | None:
        result = await self.session.execute(
            select(GenerationResult).where(GenerationResult.generation_id == generation_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def get_edits(self, generation_id: UUID) -> list[GenerationEdit]:
        result = await self.session.execute(
            select(GenerationEdit)
            .where(GenerationEdit.generation_id == generation_id)  # type: ignore[arg-type]
            .order_by(GenerationEdit.created_at.asc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())
