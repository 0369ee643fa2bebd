#!/usr/bin/env python3
"""CLI entry point for the background workers."""

import argparse
import asyncio
import sys

from src.config import get_settings
from src.factories import build_services_from_settings
from src.shared.database import close_database, get_session_factory, init_database
from src.shared.logging import get_logger, setup_logging
from src.workers.status_reconciler import StatusReconcilerWorker

logger = get_logger(__name__)


async def run_reconciler(once: bool) -> None:
    settings = get_settings()
    setup_logging(settings)
    await init_database(settings.DATABASE_URL)
    services = await build_services_from_settings(settings, get_session_factory())
    worker = StatusReconcilerWorker(
        services.uow_factory,
        services.orchestrator,
        interval=settings.RECONCILE_INTERVAL_SECONDS,
    )
    try:
        if once:
            await worker.run_once()
        else:
            worker.setup_signal_handlers()
            await worker.run()
    finally:
        await services.aclose()
        await close_database()


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(description="WhatsApp Instance Control Plane workers")
    parser.add_argument(
        "worker",
        nargs="?",
        choices=["status_reconciler"],
        default="status_reconciler",
        help="Which worker to run (default: status_reconciler)",
    )
    parser.add_argument("--once", action="store_true", help="Run a single pass and exit")
    args = parser.parse_args()

    try:
        asyncio.run(run_reconciler(args.once))
    except KeyboardInterrupt:
        logger.info("Workers interrupted")
    except Exception:
        logger.exception("Worker crashed")
        sys.exit(1)


if __name__ == "__main__":
    main()
