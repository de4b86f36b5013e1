#!/usr/bin/env python3
"""
Codex - Standalone Cron Runner

Runs the codex scheduler as a standalone service (no HTTP API).

Jobs managed:
1. owner_sync - Owners from The Graph (every hour, on the hour)
2. price_sync - Prices from the MOCA adoption feed (every minute)

With SEED_ON_STARTUP=true the seed pipeline runs once after startup.
"""
import asyncio
import logging
import signal
import sys
from datetime import datetime, timezone

from codex_api.core.config import settings

# Setup logging first
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

from codex_api.adapters.factory import build_stores
from codex_api.jobs.scheduler import CodexScheduler

# Graceful shutdown flag
_shutdown = False


def handle_shutdown(signum, frame):
    """Handle shutdown signals gracefully."""
    global _shutdown
    logger.info(f"Received signal {signum}, initiating graceful shutdown...")
    _shutdown = True


async def main():
    """Main entry point for cron service."""
    logger.info("=" * 60)
    logger.info(f"{settings.APP_NAME} Cron Service")
    logger.info("=" * 60)
    logger.info(f"Started at: {datetime.now(timezone.utc).isoformat()}")
    logger.info(f"STORE_BACKEND: {settings.STORE_BACKEND}")
    logger.info(f"THE_GRAPH_API_KEY: {'set' if settings.THE_GRAPH_API_KEY else 'NOT SET'}")
    logger.info(f"MOCA_API_BASE_URL: {settings.MOCA_API_BASE_URL or 'NOT SET'}")

    # Register signal handlers
    signal.signal(signal.SIGTERM, handle_shutdown)
    signal.signal(signal.SIGINT, handle_shutdown)

    stores = build_stores(settings)
    scheduler = CodexScheduler(stores, settings)

    try:
        await scheduler.start()

        if settings.SEED_ON_STARTUP:
            scheduler.trigger("seed")
            logger.info("Seed run started")

        # Keep running until shutdown
        logger.info("Cron service running. Press Ctrl+C to stop.")
        while not _shutdown:
            await asyncio.sleep(1)

    except Exception as e:
        logger.error(f"Cron service error: {e}")
        raise
    finally:
        logger.info("Stopping codex scheduler...")
        await scheduler.stop()
        await stores.aclose()
        logger.info("Cron service stopped.")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)
