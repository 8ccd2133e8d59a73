import logging
from datetime import datetime

from pymongo import ReturnDocument

from config.constants import (
    ADMIN_PAGE_SIZE,
    COMMISSION_CANCELLED,
    COMMISSION_CONFIRMED,
    COMMISSION_PENDING,
    COMMISSION_REFUNDED,
    CREDIT_ENTRY_TYPES,
    DEBIT_ENTRY_TYPES,
    ENTRY_EARNED,
    ENTRY_TYPES,
    INITIAL_COMMISSION_STATUSES,
    MAX_PAGE_SIZE,
    MONTHLY_ROLLUP_MONTHS,
)
from utils.errors import CommissionNotFound, InvalidAmount, InvalidEntry, InvalidTransition
from utils.money import compute_commission, parse_rate
from utils.reconciler import refresh
from utils.seller_account import get_seller
from utils.seller_lock import renew_seller_lock, seller_ledger_lock
from utils.serializers import paginate

logger = logging.getLogger(__name__)


# ==============================
# Core: append-only ledger write
# ==============================

async def record_commission(
    db,
    *,
    seller_id,
    entry_type: str = ENTRY_EARNED,
    order_id=None,
    order_amount: int = 0,
    commission_rate=None,
    amount: int | None = None,
    status: str | None = None,
    description: str | None = None,
    notes: str | None = None,
    processed_by=None,
    withdrawal_id=None,
    order_details: dict | None = None,
) -> dict:
    """
    Append one commission entry for a seller.

    - earned entries without an explicit amount are computed from
      order_amount * commission_rate, rounded to the nearest ₹10
    - system earned entries default to confirmed, everything else to pending;
      an explicit status may only be pending or confirmed
    - ends with a projection refresh under the seller lock, which raises
      total_commission for credit entries
    """
    if entry_type not in ENTRY_TYPES:
        raise InvalidEntry("type", entry_type, ENTRY_TYPES)

    if status is not None and status not in INITIAL_COMMISSION_STATUSES:
        raise InvalidEntry("status", status, INITIAL_COMMISSION_STATUSES)

    if order_amount < 0:
        raise InvalidAmount(order_amount, "Order amount cannot be negative")

    try:
        rate = parse_rate(commission_rate) if commission_rate is not None else None
    except ValueError as e:
        raise InvalidAmount(commission_rate, str(e))

    if amount is None:
        if entry_type != ENTRY_EARNED or rate is None:
            raise InvalidAmount(amount, "Amount is required for this entry type")
        amount = compute_commission(order_amount, rate)

    if amount < 0:
        raise InvalidAmount(amount, "Commission amount cannot be negative")

    if status is None:
        status = COMMISSION_CONFIRMED if entry_type == ENTRY_EARNED else COMMISSION_PENDING

    await get_seller(db, seller_id)

    now = datetime.utcnow()
    entry = {
        "seller_id": seller_id,
        "order_id": order_id,
        "type": entry_type,
        "amount": amount,
        "commission_rate": str(rate) if rate is not None else None,
        "order_amount": order_amount,
        "description": description or _default_description(entry_type, order_details, order_id),
        "status": status,
        "withdrawal_id": withdrawal_id,
        "order_details": order_details,
        "processed_by": processed_by,
        "notes": notes,
        "created_at": now,
        "updated_at": now,
        "confirmed_at": now if status == COMMISSION_CONFIRMED else None,
    }

    async with seller_ledger_lock(db, seller_id) as token:
        await renew_seller_lock(db=db, seller_id=seller_id, token=token)

        result = await db.commission_history.insert_one(entry)
        entry["_id"] = result.inserted_id

        await refresh(db, seller_id)

    logger.info(
        "COMMISSION_RECORDED seller=%s entry=%s type=%s status=%s amount=%s",
        seller_id,
        entry["_id"],
        entry_type,
        status,
        amount,
    )

    return entry


def _default_description(entry_type: str, order_details: dict | None, order_id) -> str:
    if entry_type == ENTRY_EARNED:
        order_number = (order_details or {}).get("order_number") or order_id
        return f"Commission earned from order #{order_number}"
    return f"Commission {entry_type} by admin"


# ==============================
# Guarded status transitions
# ==============================

async def _transition(
    db,
    entry_id,
    *,
    expected: str,
    target: str,
    updates: dict,
) -> dict:
    entry = await db.commission_history.find_one({"_id": entry_id})
    if not entry:
        raise CommissionNotFound(entry_id)

    seller_id = entry["seller_id"]

    async with seller_ledger_lock(db, seller_id) as token:
        await renew_seller_lock(db=db, seller_id=seller_id, token=token)

        updated = await db.commission_history.find_one_and_update(
            {"_id": entry_id, "status": expected},
            {"$set": {"status": target, "updated_at": datetime.utcnow(), **updates}},
            return_document=ReturnDocument.AFTER,
        )

        if not updated:
            current = await db.commission_history.find_one({"_id": entry_id}, {"status": 1})
            raise InvalidTransition(
                "commission",
                entry_id,
                current["status"] if current else "missing",
                target,
            )

        await refresh(db, seller_id)

    logger.info(
        "COMMISSION_%s entry=%s seller=%s amount=%s",
        target.upper(),
        entry_id,
        seller_id,
        updated["amount"],
    )

    return updated


async def confirm_commission(db, entry_id, admin_id) -> dict:
    now = datetime.utcnow()
    return await _transition(
        db,
        entry_id,
        expected=COMMISSION_PENDING,
        target=COMMISSION_CONFIRMED,
        updates={"confirmed_at": now, "processed_by": admin_id},
    )


async def cancel_commission(db, entry_id, admin_id, reason: str | None = None) -> dict:
    return await _transition(
        db,
        entry_id,
        expected=COMMISSION_PENDING,
        target=COMMISSION_CANCELLED,
        updates={
            "cancelled_at": datetime.utcnow(),
            "processed_by": admin_id,
            "notes": reason,
        },
    )


async def refund_commission(db, entry_id, admin_id, reason: str | None = None) -> dict:
    return await _transition(
        db,
        entry_id,
        expected=COMMISSION_CONFIRMED,
        target=COMMISSION_REFUNDED,
        updates={
            "refunded_at": datetime.utcnow(),
            "processed_by": admin_id,
            "notes": reason,
        },
    )


# ==============================
# Reads
# ==============================

async def get_commission_entry(db, entry_id, seller_id=None) -> dict:
    query = {"_id": entry_id}
    if seller_id is not None:
        query["seller_id"] = seller_id

    entry = await db.commission_history.find_one(query)
    if not entry:
        raise CommissionNotFound(entry_id)
    return entry


def build_commission_query(
    seller_id=None,
    entry_type: str | None = None,
    status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> dict:
    query = {}
    if seller_id is not None:
        query["seller_id"] = seller_id
    if entry_type:
        query["type"] = entry_type
    if status:
        query["status"] = status

    if start_date or end_date:
        query["created_at"] = {}
        if start_date:
            query["created_at"]["$gte"] = start_date
        if end_date:
            query["created_at"]["$lte"] = end_date

    return query


async def query_commissions(
    db,
    *,
    seller_id=None,
    entry_type: str | None = None,
    status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    page: int = 1,
    limit: int = ADMIN_PAGE_SIZE,
) -> dict:
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    query = build_commission_query(seller_id, entry_type, status, start_date, end_date)

    items = await (
        db.commission_history
        .find(query)
        .sort("created_at", -1)
        .skip((page - 1) * limit)
        .limit(limit)
        .to_list(limit)
    )
    total = await db.commission_history.count_documents(query)

    return {
        "items": items,
        "pagination": paginate(page, limit, total),
    }


async def summarize_commissions(db, seller_id) -> dict:
    rows = await db.commission_history.aggregate([
        {"$match": {"seller_id": seller_id}},
        {"$group": {
            "_id": {"type": "$type", "status": "$status"},
            "count": {"$sum": 1},
            "amount": {"$sum": "$amount"},
        }},
    ]).to_list(None)

    summary = {
        "total_earned": 0,
        "total_deducted": 0,
        "pending_amount": 0,
        "confirmed_amount": 0,
    }
    by_type: dict[str, dict] = {}
    by_status: dict[str, dict] = {}

    for row in rows:
        entry_type = row["_id"]["type"]
        status = row["_id"]["status"]
        amount = row["amount"]

        if entry_type in CREDIT_ENTRY_TYPES:
            summary["total_earned"] += amount
        elif entry_type in DEBIT_ENTRY_TYPES:
            summary["total_deducted"] += amount

        if status == COMMISSION_PENDING:
            summary["pending_amount"] += amount
        elif status == COMMISSION_CONFIRMED:
            summary["confirmed_amount"] += amount

        for bucket, key in ((by_type, entry_type), (by_status, status)):
            agg = bucket.setdefault(key, {"count": 0, "total_amount": 0})
            agg["count"] += row["count"]
            agg["total_amount"] += amount

    return {
        "summary": summary,
        "type_breakdown": by_type,
        "status_breakdown": by_status,
    }


async def monthly_rollup(db, seller_id, months: int = MONTHLY_ROLLUP_MONTHS) -> list[dict]:
    rows = await db.commission_history.aggregate([
        {"$match": {
            "seller_id": seller_id,
            "type": ENTRY_EARNED,
            "status": COMMISSION_CONFIRMED,
        }},
        {"$group": {
            "_id": {
                "year": {"$year": "$created_at"},
                "month": {"$month": "$created_at"},
            },
            "total_earned": {"$sum": "$amount"},
            "count": {"$sum": 1},
        }},
        {"$sort": {"_id.year": -1, "_id.month": -1}},
        {"$limit": months},
    ]).to_list(months)

    return [
        {
            "year": r["_id"]["year"],
            "month": r["_id"]["month"],
            "total_earned": r["total_earned"],
            "count": r["count"],
        }
        for r in rows
    ]
