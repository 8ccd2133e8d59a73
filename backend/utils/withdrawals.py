import logging
from datetime import datetime

from pymongo import ReturnDocument

from config.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    WITHDRAWAL_CANCELLED,
    WITHDRAWAL_COMPLETED,
    WITHDRAWAL_PENDING,
    WITHDRAWAL_REJECTED,
)
from utils.errors import (
    IncompletePayoutProfile,
    InsufficientBalance,
    InvalidAmount,
    InvalidTransition,
    WithdrawalNotFound,
)
from utils.reconciler import compute_balance, refresh
from utils.seller_account import get_seller, missing_bank_fields, snapshot_bank_details
from utils.seller_lock import renew_seller_lock, seller_ledger_lock
from utils.serializers import paginate

logger = logging.getLogger(__name__)


# ==============================
# Seller: request cash-out
# ==============================

async def request_withdrawal(db, seller_id, amount: int, seller_notes: str | None = None) -> dict:
    """
    Admission control for a withdrawal.

    The available balance is recomputed from the ledger inside the seller
    lock, never read from the cached projection, so two concurrent requests
    cannot both spend the same balance.
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(amount, "Invalid withdrawal amount")

    seller = await get_seller(db, seller_id)

    missing = missing_bank_fields(seller)
    if missing:
        raise IncompletePayoutProfile(missing)

    async with seller_ledger_lock(db, seller_id) as token:
        balance = await compute_balance(db, seller_id)

        logger.info(
            "WITHDRAWAL_ADMISSION seller=%s requested=%s available=%s confirmed=%s withdrawn=%s pending=%s",
            seller_id,
            amount,
            balance["available"],
            balance["total_confirmed"],
            balance["total_withdrawn"],
            balance["total_pending_withdrawals"],
        )

        if amount > balance["available"]:
            raise InsufficientBalance(balance["available"], amount)

        now = datetime.utcnow()
        withdrawal = {
            "seller_id": seller_id,
            "amount": amount,
            "status": WITHDRAWAL_PENDING,
            "bank_details": snapshot_bank_details(seller),
            "seller_notes": seller_notes,
            "admin_notes": None,
            "rejection_reason": None,
            "processed_by": None,
            "requested_at": now,
            "processed_at": None,
        }

        await renew_seller_lock(db=db, seller_id=seller_id, token=token)
        result = await db.withdrawals.insert_one(withdrawal)
        withdrawal["_id"] = result.inserted_id

        available = await refresh(db, seller_id)

    logger.info(
        "WITHDRAWAL_REQUESTED seller=%s withdrawal=%s amount=%s available=%s",
        seller_id,
        withdrawal["_id"],
        amount,
        available,
    )

    return withdrawal


# ==============================
# Guarded transitions
# ==============================

async def _transition(
    db,
    withdrawal_id,
    *,
    target: str,
    updates: dict,
    seller_id=None,
) -> dict:
    query = {"_id": withdrawal_id}
    if seller_id is not None:
        query["seller_id"] = seller_id

    withdrawal = await db.withdrawals.find_one(query)
    if not withdrawal:
        raise WithdrawalNotFound(withdrawal_id)

    owner_id = withdrawal["seller_id"]

    async with seller_ledger_lock(db, owner_id) as token:
        await renew_seller_lock(db=db, seller_id=owner_id, token=token)

        updated = await db.withdrawals.find_one_and_update(
            {"_id": withdrawal_id, "status": WITHDRAWAL_PENDING},
            {"$set": {"status": target, "processed_at": datetime.utcnow(), **updates}},
            return_document=ReturnDocument.AFTER,
        )

        if not updated:
            current = await db.withdrawals.find_one({"_id": withdrawal_id}, {"status": 1})
            raise InvalidTransition(
                "withdrawal",
                withdrawal_id,
                current["status"] if current else "missing",
                target,
            )

        await refresh(db, owner_id)

    logger.info(
        "WITHDRAWAL_%s withdrawal=%s seller=%s amount=%s",
        target.upper(),
        withdrawal_id,
        owner_id,
        updated["amount"],
    )

    return updated


async def cancel_withdrawal(db, withdrawal_id, seller_id) -> dict:
    # Scoped to the owner: someone else's request reads as not found
    return await _transition(
        db,
        withdrawal_id,
        target=WITHDRAWAL_CANCELLED,
        updates={},
        seller_id=seller_id,
    )


async def approve_withdrawal(db, withdrawal_id, admin_id, notes: str | None = None) -> dict:
    return await _transition(
        db,
        withdrawal_id,
        target=WITHDRAWAL_COMPLETED,
        updates={"processed_by": admin_id, "admin_notes": notes},
    )


async def complete_withdrawal(db, withdrawal_id, admin_id, notes: str | None = None) -> dict:
    """Admin marks the bank transfer done. Same guard as approve."""
    return await approve_withdrawal(db, withdrawal_id, admin_id, notes)


async def reject_withdrawal(db, withdrawal_id, admin_id, reason: str | None = None) -> dict:
    return await _transition(
        db,
        withdrawal_id,
        target=WITHDRAWAL_REJECTED,
        updates={"processed_by": admin_id, "rejection_reason": reason},
    )


# ==============================
# Reads
# ==============================

async def get_withdrawal(db, withdrawal_id, seller_id=None) -> dict:
    query = {"_id": withdrawal_id}
    if seller_id is not None:
        query["seller_id"] = seller_id

    withdrawal = await db.withdrawals.find_one(query)
    if not withdrawal:
        raise WithdrawalNotFound(withdrawal_id)
    return withdrawal


async def list_withdrawals(
    db,
    *,
    seller_id=None,
    status: str | None = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> dict:
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    query = {}
    if seller_id is not None:
        query["seller_id"] = seller_id
    if status:
        query["status"] = status

    items = await (
        db.withdrawals
        .find(query)
        .sort("requested_at", -1)
        .skip((page - 1) * limit)
        .limit(limit)
        .to_list(limit)
    )
    total = await db.withdrawals.count_documents(query)

    return {
        "items": items,
        "pagination": paginate(page, limit, total),
    }
