"""Expiry sweep CLI — ``relocation-cleanup``.

Connects to the database and deletes everything whose lifetime has
elapsed: preview artifacts, idempotency keys, and "My Documents" rows
(together with their rendered files).  Intended for cron jobs.

Examples::

    # Sweep everything
    uv run relocation-cleanup

    # Only expired previews and idempotency keys
    uv run relocation-cleanup --what artifacts --what idempotency
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from relocation_flows.service import CLEANUP_TARGETS

logger = logging.getLogger(__name__)


async def run_cleanup(what: list[str] | tuple[str, ...] = CLEANUP_TARGETS) -> dict[str, int]:
    """Run the sweep in its own session and return rows removed per target."""
    # Lazy imports to avoid loading DB machinery at module import time
    from relocation_db.engine import dispose_engine, session_scope
    from relocation_flows.registry import QuestionSetRegistry

    from relocation_server.app import build_service
    from relocation_server.config import load_settings

    settings = load_settings()
    registry = QuestionSetRegistry(flows_dir=settings.flows_dir)
    registry.load()
    service = build_service(settings, registry)

    try:
        async with session_scope() as db:
            counts = await service.purge_expired(db, tuple(what))
        logger.info("Cleanup complete: %s", counts)
        return counts
    finally:
        await dispose_engine()


def cli() -> None:
    """Console-script entry point: ``relocation-cleanup``."""
    parser = argparse.ArgumentParser(
        prog="relocation-cleanup",
        description="Delete expired previews, idempotency keys and saved documents.",
    )
    parser.add_argument(
        "--what",
        action="append",
        choices=list(CLEANUP_TARGETS),
        default=None,
        help="Only sweep this target (repeatable). Default: all targets",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    counts = asyncio.run(run_cleanup(args.what or CLEANUP_TARGETS))

    for target, n in counts.items():
        print(f"{target}: {n} deleted")
    sys.exit(0)
