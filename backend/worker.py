"""
Polling worker that keeps the database in step with n8n.

Every SYNC_INTERVAL_SECONDS it syncs all deployed workflows (status and
execution counters) and writes a sync_logs row. Once a day it deletes
archived workflows older than CLEANUP_MAX_AGE_HOURS from n8n and the
database.

Usage:
    python worker.py
"""

import os
import sys
import time
import logging
from datetime import datetime, timezone

# Add the backend directory to the path
sys.path.insert(0, os.path.dirname(__file__))

from clixen.clients import get_n8n_client
from clixen.core.config import settings
from clixen.core.logging_config import setup_logging
from clixen.database import SessionLocal, init_db
from clixen.exceptions import ServiceNotConfiguredError
from clixen.services.sync_service import SyncService

# Seconds between cleanup passes (24 hours)
CLEANUP_INTERVAL = int(os.getenv("CLEANUP_INTERVAL", str(24 * 60 * 60)))

logger = logging.getLogger("worker")


def run_sync() -> None:
    """One sync pass over every active deployed workflow."""
    db = SessionLocal()
    try:
        result = SyncService(db, get_n8n_client()).sync_all()
        logger.info(
            f"Sync pass: {result.status}, "
            f"{result.successful_syncs}/{result.workflows_processed} synced, "
            f"{result.executions_updated} executions"
        )
    finally:
        db.close()


def run_cleanup() -> int:
    """
    Delete archived workflows past the grace period.

    Returns the number of workflows deleted.
    """
    db = SessionLocal()
    try:
        result = SyncService(db, get_n8n_client()).cleanup_inactive(
            max_age_hours=settings.cleanup_max_age_hours
        )
        if result.failed:
            logger.warning(f"Cleanup: {result.failed} workflow(s) could not be deleted: {result.errors[:5]}")
        return result.deleted
    finally:
        db.close()


def main() -> None:
    """Sync on a fixed interval and clean up once a day."""
    setup_logging(log_level=settings.log_level, log_format=settings.log_format)
    init_db()

    if not settings.n8n_configured:
        logger.error("n8n is not configured (N8N_API_URL / N8N_API_KEY); worker exiting")
        raise SystemExit(1)

    interval = settings.sync_interval_seconds
    logger.info(f"Worker started, syncing every {interval}s")
    logger.info(f"Cleanup interval: {CLEANUP_INTERVAL}s")

    last_cleanup = datetime.now(timezone.utc)

    while True:
        try:
            now = datetime.now(timezone.utc)
            if (now - last_cleanup).total_seconds() >= CLEANUP_INTERVAL:
                logger.info("Daily cleanup triggered")
                deleted = run_cleanup()
                logger.info(f"Daily cleanup removed {deleted} workflow(s)")
                last_cleanup = now

            run_sync()
            time.sleep(interval)

        except KeyboardInterrupt:
            logger.info("Worker shutting down")
            break
        except ServiceNotConfiguredError as e:
            logger.error(f"Worker stopped: {e.message}")
            break
        except Exception as e:
            logger.error(f"Worker error: {e}")
            time.sleep(interval)


if __name__ == "__main__":
    main()
