import asyncio
import logging
from datetime import datetime, timedelta
from database import get_db

CHECK_INTERVAL_SECONDS = 60 * 60 * 24  # daily
RETENTION_DAYS = 365                   # money actions keep a year of audit trail
logger = logging.getLogger(__name__)


async def audit_cleanup_worker():
    db = get_db()

    while True:
        cutoff = datetime.utcnow() - timedelta(days=RETENTION_DAYS)

        try:
            result = await db.audit_logs.delete_many({
                "created_at": {"$lt": cutoff}
            })
            if result.deleted_count:
                logger.info("AUDIT_CLEANUP deleted=%s", result.deleted_count)
        except Exception:
            logger.exception("AUDIT_CLEANUP_ERROR")

        await asyncio.sleep(CHECK_INTERVAL_SECONDS)
