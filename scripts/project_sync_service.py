#!/usr/bin/env python3
"""Project sync service - container entrypoint.

Runs a sync pass every SYNC_INTERVAL seconds until stopped. Writes a health
file after every completed pass for liveness checks.

Usage (Docker):
    CMD ["python3", "scripts/project_sync_service.py"]

Usage (manual):
    python3 scripts/project_sync_service.py

Environment:
    SYNC_ON_START=true   - Run a pass immediately on start (default: true)
    SYNC_INTERVAL=1800   - Seconds between passes (default: 30 min)
    See projectsync/config.py for all variables.
"""

import asyncio
import logging
import os
import signal
import sys
import time
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from projectsync.config import get_config
from projectsync.logging_config import configure_logging
from projectsync.stores import ensure_collection
from projectsync.sync import create_engine

logger = logging.getLogger("projectsync.service")

HEALTH_FILE = Path("/tmp/project_sync.health")
SHUTDOWN_REQUESTED = False


def handle_signal(signum, frame):
    """Handle SIGTERM/SIGINT for graceful shutdown."""
    global SHUTDOWN_REQUESTED
    logger.info("Shutdown signal received (signal=%d), finishing current pass...", signum)
    SHUTDOWN_REQUESTED = True


async def run_sync_cycle(config) -> bool:
    """Run a single sync pass.

    Returns:
        True if the pass ran (or was skipped for budget), False if it aborted.
    """
    try:
        engine = create_engine(config)
        if config.record_store == "qdrant":
            ensure_collection(engine.store.client, engine.store.collection_name)
        async with engine:
            result = await engine.run_sync_pass()
    except Exception as e:
        logger.error("Sync pass failed: %s", e)
        return False

    return not result.aborted


def write_health_file():
    """Write health file for Docker healthcheck."""
    try:
        HEALTH_FILE.write_text(str(int(time.time())))
    except OSError as e:
        logger.warning("Failed to write health file: %s", e)


def main():
    """Main service loop."""
    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    try:
        config = get_config()
    except Exception as e:
        configure_logging()
        logger.error("Failed to load config: %s", e)
        sys.exit(1)

    configure_logging(config.log_level, config.log_format)

    interval = config.sync_interval
    sync_on_start = os.getenv("SYNC_ON_START", "true").lower() == "true"

    logger.info(
        "Project sync service starting (interval=%ds, sync_on_start=%s, store=%s)",
        interval, sync_on_start, config.record_store,
    )

    first_run = True
    while not SHUTDOWN_REQUESTED:
        if first_run and not sync_on_start:
            logger.info("Skipping initial pass (SYNC_ON_START=false)")
        else:
            logger.info("Starting sync pass...")
            if asyncio.run(run_sync_cycle(config)):
                write_health_file()
        first_run = False

        # Sleep in small increments to allow graceful shutdown
        for _ in range(interval):
            if SHUTDOWN_REQUESTED:
                break
            time.sleep(1)

    logger.info("Project sync service shutting down gracefully")


if __name__ == "__main__":
    main()
