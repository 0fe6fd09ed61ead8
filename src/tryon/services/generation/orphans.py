"""Reaping of generations left in flight by a crashed or killed request.

A pipeline runs inside one request; if the process dies mid-attempt the
record stays ``pending``/``processing`` forever. Nothing was debited for it,
so the only repair needed is a terminal ``failed`` status.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from uuid import UUID

import structlog

from tryon.core.timezone import utcnow

logger = structlog.get_logger()

ORPHAN_ERROR_MESSAGE = "Generation was interrupted before completion. Please try again."


@dataclass
class ReapResult:
    stale_ids: list[UUID] = field(default_factory=list)
    reaped_count: int = 0
    dry_run: bool = False


async def reap_orphaned_generations(
    uow_factory, timeout_minutes: int, dry_run: bool = False, limit: int = 500
) -> ReapResult:
    """Fail generations not updated for ``timeout_minutes``.

    Args:
        uow_factory: Unit of Work factory
        timeout_minutes: Age after which an in-flight record is considered orphaned
        dry_run: Only report what would be reaped
        limit: Maximum records handled per call

    Returns:
        ReapResult with the stale ids found and how many were failed
    """
    cutoff = utcnow() - timedelta(minutes=timeout_minutes)
    result = ReapResult(dry_run=dry_run)

    async with await uow_factory() as uow:
        stale = await uow.generations.get_stale_in_flight(cutoff, limit=limit)
        result.stale_ids = [generation.id for generation in stale]
        if not dry_run:
            for generation in stale:
                generation.mark_failed(ORPHAN_ERROR_MESSAGE)
            result.reaped_count = len(stale)

    if result.stale_ids:
        logger.info(
            "generation.orphans_reaped",
            stale_count=len(result.stale_ids),
            reaped_count=result.reaped_count,
            dry_run=dry_run,
            timeout_minutes=timeout_minutes,
        )
    return result
