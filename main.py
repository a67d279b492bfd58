"""
Main entry point for the event cache with its daily refresh schedule.
"""

import asyncio
import logging
import os
import signal

from dotenv import load_dotenv

from tonight.config import load_settings
from tonight.service import TonightService


async def main():
    """Load config, arm the daily scrape and run until signalled."""
    load_dotenv()

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s"
    )
    logger = logging.getLogger(__name__)

    settings = load_settings(os.getenv("TONIGHT_CONFIG", "config.yaml"))
    if not settings.sources:
        logger.error("No sources configured. Exiting.")
        return

    # Registry validation errors are fatal here, before anything is scheduled
    service = TonightService(settings)
    logger.info(f"Loaded {len(service.registry)} source(s), merge order: {', '.join(service.registry.merge_order)}")

    stop_event = asyncio.Event()

    def signal_handler():
        logger.info("Received shutdown signal")
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        asyncio.get_running_loop().add_signal_handler(sig, signal_handler)

    try:
        if os.getenv("SCRAPE_ON_START", "true").lower() in ("1", "true", "yes"):
            await service.refresh_cache()

        service.schedule_daily_scrape()
        await stop_event.wait()
    finally:
        logger.info("Shutting down...")
        await service.close()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    asyncio.run(main())
