import logging

from config.constants import (
    COMMISSION_CONFIRMED,
    CREDIT_ENTRY_TYPES,
    ENTRY_EARNED,
    WITHDRAWAL_COMPLETED,
    WITHDRAWAL_PENDING,
)
from utils.errors import ReconciliationFailure
from utils.seller_account import write_projection
from utils.seller_lock import seller_ledger_lock

logger = logging.getLogger(__name__)


# ==============================
# Available balance (derived only)
# ==============================

async def compute_balance(db, seller_id) -> dict:
    """
    Recompute a seller's spendable balance from ledger + withdrawals.

    available = confirmed (earned + bonus)
                - completed withdrawals
                - pending withdrawals
    floored at zero. Read-only; safe to call without the seller lock.
    """
    confirmed_rows = await db.commission_history.aggregate([
        {"$match": {
            "seller_id": seller_id,
            "status": COMMISSION_CONFIRMED,
            "type": {"$in": list(CREDIT_ENTRY_TYPES)},
        }},
        {"$group": {"_id": None, "amount": {"$sum": "$amount"}}},
    ]).to_list(1)

    withdrawal_rows = await db.withdrawals.aggregate([
        {"$match": {
            "seller_id": seller_id,
            "status": {"$in": [WITHDRAWAL_COMPLETED, WITHDRAWAL_PENDING]},
        }},
        {"$group": {"_id": "$status", "amount": {"$sum": "$amount"}}},
    ]).to_list(None)

    confirmed = confirmed_rows[0]["amount"] if confirmed_rows else 0
    by_status = {r["_id"]: r["amount"] for r in withdrawal_rows}
    withdrawn = by_status.get(WITHDRAWAL_COMPLETED, 0)
    pending = by_status.get(WITHDRAWAL_PENDING, 0)

    return {
        "available": max(0, confirmed - withdrawn - pending),
        "total_confirmed": confirmed,
        "total_withdrawn": withdrawn,
        "total_pending_withdrawals": pending,
    }


async def compute_available(db, seller_id) -> int:
    balance = await compute_balance(db, seller_id)
    return balance["available"]


async def compute_lifetime_totals(db, seller_id) -> dict:
    """
    Lifetime figures for the projection: every credit entry ever recorded,
    whatever its status, and the number of earned (order) entries.
    """
    rows = await db.commission_history.aggregate([
        {"$match": {
            "seller_id": seller_id,
            "type": {"$in": list(CREDIT_ENTRY_TYPES)},
        }},
        {"$group": {
            "_id": "$type",
            "amount": {"$sum": "$amount"},
            "count": {"$sum": 1},
        }},
    ]).to_list(None)

    by_type = {r["_id"]: r for r in rows}

    return {
        "total_commission": sum(r["amount"] for r in rows),
        "total_orders": by_type.get(ENTRY_EARNED, {}).get("count", 0),
    }


# ==============================
# Refresh cached projection
# ==============================

async def refresh(db, seller_id) -> int:
    """
    Recompute and overwrite the seller projection
    (available_commission, total_commission, total_orders).
    Idempotent. Callers mutating the ledger must hold the seller lock.
    """
    try:
        available = await compute_available(db, seller_id)
        totals = await compute_lifetime_totals(db, seller_id)
        await write_projection(db, seller_id, available=available, **totals)
    except Exception as e:
        logger.exception("RECONCILE_FAILED seller=%s", seller_id)
        raise ReconciliationFailure(seller_id, str(e)) from e

    logger.debug("RECONCILED seller=%s available=%s", seller_id, available)
    return available


# ==============================
# Bulk recalculation (admin / worker)
# ==============================

PROJECTION_FIELDS = ("available_commission", "total_commission", "total_orders")


async def recalculate_all(db) -> dict:
    """
    Refresh every seller. A failing seller is recorded and skipped,
    never aborting the batch.
    """
    checked = 0
    updated = 0
    errors = []

    cursor = db.users.find(
        {"role": "seller"},
        {"_id": 1, **{field: 1 for field in PROJECTION_FIELDS}},
    )

    async for seller in cursor:
        checked += 1
        seller_id = seller["_id"]
        previous = {field: seller.get(field) for field in PROJECTION_FIELDS}

        try:
            async with seller_ledger_lock(db, seller_id):
                await refresh(db, seller_id)
        except Exception as e:
            # One bad seller never aborts the batch
            errors.append({"seller_id": str(seller_id), "error": str(e)})
            continue

        current = await db.users.find_one({"_id": seller_id}, {field: 1 for field in PROJECTION_FIELDS})
        drift = {
            field: (previous[field], current.get(field))
            for field in PROJECTION_FIELDS
            if previous[field] != current.get(field)
        }

        if drift:
            updated += 1
            logger.info("COMMISSION_DRIFT_FIXED seller=%s drift=%s", seller_id, drift)

    if errors:
        logger.warning("RECALCULATE_ALL_ERRORS count=%s", len(errors))

    logger.info("RECALCULATE_ALL checked=%s updated=%s errors=%s", checked, updated, len(errors))

    return {
        "checked": checked,
        "updated": updated,
        "errors": errors,
    }
