import asyncio
import logging

from database import get_db
from config.env import RECONCILE_INTERVAL_SECONDS
from utils.reconciler import recalculate_all

logger = logging.getLogger(__name__)


async def commission_reconcile_worker():
    """
    Periodic safety net: recompute every seller's available commission
    so a failed refresh never leaves the cached balance stale for long.
    """
    db = get_db()

    while True:
        try:
            report = await recalculate_all(db)
            if report["updated"] or report["errors"]:
                logger.warning(
                    "COMMISSION_RECONCILE drift_fixed=%s errors=%s",
                    report["updated"],
                    len(report["errors"]),
                )
        except Exception:
            # Never crash the worker loop
            logger.exception("COMMISSION_RECONCILE_ERROR")

        await asyncio.sleep(RECONCILE_INTERVAL_SECONDS)
