"""CLI command for failing generations orphaned by a crashed request.

Usage:
    python -m tryon.cli.reap_generations [OPTIONS]

Examples:
    # Fail everything in flight for longer than ORPHAN_TIMEOUT_MINUTES
    python -m tryon.cli.reap_generations

    # Use a custom timeout
    python -m tryon.cli.reap_generations --timeout-minutes 60

    # Dry run (no database writes)
    python -m tryon.cli.reap_generations --dry-run
"""

import asyncio
import sys
from argparse import ArgumentParser, Namespace
from typing import Optional, Sequence

import structlog
from sqlalchemy.exc import SQLAlchemyError

from tryon.core import timezone  # noqa: F401
from tryon.core.config import Settings, configure_logging
from tryon.core.database import setup_db_session
from tryon.services.generation.orphans import reap_orphaned_generations
from tryon.uow import create_uow_factory

logger = structlog.get_logger()


def parse_args(argv: Optional[Sequence[str]] = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(
        description="Fail generations stuck in pending/processing",
        epilog="Orphaned generations were never charged; they are only marked failed",
    )

    parser.add_argument(
        "--timeout-minutes",
        type=int,
        help="Age after which an in-flight generation is orphaned (default: ORPHAN_TIMEOUT_MINUTES)",
    )

    parser.add_argument(
        "--limit",
        type=int,
        default=500,
        help="Maximum number of generations to reap (default: 500)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List orphaned generations without database writes",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser.parse_args(argv)


async def async_main(argv: Optional[Sequence[str]] = None, uow_factory=None) -> int:
    """Main CLI entry point (async).

    Returns:
        Exit code: 0 (success), 1 (error)
    """
    args = parse_args(argv)

    settings = Settings()  # type: ignore[call-arg]
    if args.verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings)

    timeout = args.timeout_minutes or settings.orphan_timeout_minutes
    if timeout < 1:
        print("Error: --timeout-minutes must be at least 1", file=sys.stderr)
        return 1

    logger.info("cli.started", timeout_minutes=timeout, dry_run=args.dry_run, limit=args.limit)

    if uow_factory is None:
        session_factory = setup_db_session(settings.database_url, pool_size=1)
        uow_factory = create_uow_factory(session_factory)

    try:
        result = await reap_orphaned_generations(
            uow_factory, timeout_minutes=timeout, dry_run=args.dry_run, limit=args.limit
        )
    except SQLAlchemyError as e:
        logger.error("cli.database_error", error=str(e), error_type=type(e).__name__)
        print(f"\nDatabase error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("cli.interrupted")
        print("\nReaping interrupted by user", file=sys.stderr)
        return 130

    print("\n" + "=" * 60)
    print("Orphaned Generation Summary")
    print("=" * 60)
    print(f"Timeout: {timeout} minute(s)")
    print(f"Orphaned generations found: {len(result.stale_ids)}")
    print(f"Generations marked failed: {result.reaped_count}")
    for generation_id in result.stale_ids[:10]:
        print(f"  - {generation_id}")
    if len(result.stale_ids) > 10:
        print(f"  ... and {len(result.stale_ids) - 10} more")
    if args.dry_run:
        print("\n[DRY RUN] No changes were persisted to database")
    print("=" * 60 + "\n")

    return 0


def main() -> None:
    """Synchronous entry point for CLI."""
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
