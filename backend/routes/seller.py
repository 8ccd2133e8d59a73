from fastapi import APIRouter, Depends, Query
from datetime import datetime
from typing import Optional

from database import get_db
from config.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from models.commission import CommissionStatus, CommissionType
from models.user import BankDetailsUpdate, SellerAccount
from models.withdrawal import WithdrawalCreate, WithdrawalStatus
from utils.audit import log_audit
from utils.bank_details import build_bank_profile
from utils.commission_ledger import (
    get_commission_entry,
    monthly_rollup,
    query_commissions,
    summarize_commissions,
)
from utils.guards import assert_seller_not_frozen, parse_object_id
from utils.reconciler import compute_balance
from utils.security import require_role
from utils.seller_account import get_seller_account
from utils.serializers import serialize_commission_entry, serialize_withdrawal
from utils.withdrawals import (
    cancel_withdrawal,
    get_withdrawal,
    list_withdrawals,
    request_withdrawal,
)

router = APIRouter(
    prefix="/seller",
    tags=["Seller"]
)


# ======================================================
# COMMISSION HISTORY
# ======================================================

@router.get("/commissions")
async def commission_history(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    type: Optional[CommissionType] = None,
    status: Optional[CommissionStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
):
    result = await query_commissions(
        db,
        seller_id=seller["_id"],
        entry_type=type.value if type else None,
        status=status.value if status else None,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    summary = await summarize_commissions(db, seller["_id"])

    return {
        "commission_history": [serialize_commission_entry(e) for e in result["items"]],
        "summary": summary["summary"],
        "pagination": result["pagination"],
    }


@router.get("/commissions/summary")
async def commission_summary(
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
):
    seller_id = seller["_id"]

    summary = await summarize_commissions(db, seller_id)
    monthly = await monthly_rollup(db, seller_id)
    account = SellerAccount(**await get_seller_account(db, seller_id))

    return {
        **summary,
        "monthly_earnings": monthly,
        "account": account.model_dump(mode="json"),
    }


@router.get("/commissions/{entry_id}")
async def commission_details(
    entry_id: str,
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
):
    entry = await get_commission_entry(
        db,
        parse_object_id(entry_id, "commission_id"),
        seller_id=seller["_id"],
    )
    return {"commission": serialize_commission_entry(entry)}


# ======================================================
# WALLET (CACHED PROJECTION, READ ONLY)
# ======================================================

@router.get("/wallet")
async def seller_wallet(
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
):
    account = SellerAccount(**await get_seller_account(db, seller["_id"]))
    balance = await compute_balance(db, seller["_id"])

    return {
        "account": account.model_dump(mode="json"),
        "balances": {
            "total_confirmed": balance["total_confirmed"],
            "total_withdrawn": balance["total_withdrawn"],
            "pending_withdrawals": balance["total_pending_withdrawals"],
        },
    }


# ======================================================
# PAYOUT PROFILE
# ======================================================

@router.put("/bank-details")
async def update_bank_details(
    data: BankDetailsUpdate,
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
):
    profile = build_bank_profile(**data.model_dump())

    await db.users.update_one(
        {"_id": seller["_id"]},
        {
            "$set": {
                "seller_profile.bank_details": profile,
                "updated_at": datetime.utcnow(),
            }
        },
    )

    await log_audit(
        db,
        actor_id=seller["_id"],
        actor_role="seller",
        action="SELLER_BANK_DETAILS_UPDATED",
        metadata={"bank_account_masked": profile["bank_account_masked"]},
    )

    return {
        "message": "Bank details updated",
        "bank_account_masked": profile["bank_account_masked"],
    }


@router.get("/bank-details")
async def get_bank_details(
    seller=Depends(require_role("seller")),
):
    bank = (seller.get("seller_profile") or {}).get("bank_details") or {}

    return {
        "account_holder_name": bank.get("account_holder_name"),
        "bank_account_masked": bank.get("bank_account_masked"),
        "ifsc_code": bank.get("ifsc_code"),
        "bank_name": bank.get("bank_name"),
        "upi_id": bank.get("upi_id"),
    }


# ======================================================
# WITHDRAWALS
# ======================================================

@router.post("/withdrawals")
async def create_withdrawal(
    data: WithdrawalCreate,
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
):
    assert_seller_not_frozen(seller)

    withdrawal = await request_withdrawal(
        db,
        seller["_id"],
        data.amount,
        seller_notes=data.seller_notes,
    )
    account = await get_seller_account(db, seller["_id"])

    await log_audit(
        db,
        actor_id=seller["_id"],
        actor_role="seller",
        action="WITHDRAWAL_REQUESTED",
        metadata={"withdrawal_id": withdrawal["_id"], "amount": withdrawal["amount"]},
    )

    return {
        "message": "Withdrawal request submitted successfully",
        "withdrawal": serialize_withdrawal(withdrawal),
        "available_commission": account["available_commission"],
    }


@router.get("/withdrawals")
async def withdrawal_history(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    status: Optional[WithdrawalStatus] = None,
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
):
    result = await list_withdrawals(
        db,
        seller_id=seller["_id"],
        status=status.value if status else None,
        page=page,
        limit=limit,
    )

    return {
        "withdrawals": [serialize_withdrawal(w) for w in result["items"]],
        "pagination": result["pagination"],
    }


@router.get("/withdrawals/{withdrawal_id}")
async def withdrawal_details(
    withdrawal_id: str,
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
):
    withdrawal = await get_withdrawal(
        db,
        parse_object_id(withdrawal_id, "withdrawal_id"),
        seller_id=seller["_id"],
    )
    return {"withdrawal": serialize_withdrawal(withdrawal)}


@router.patch("/withdrawals/{withdrawal_id}/cancel")
async def cancel_own_withdrawal(
    withdrawal_id: str,
    seller=Depends(require_role("seller")),
    db=Depends(get_db),
):
    withdrawal = await cancel_withdrawal(
        db,
        parse_object_id(withdrawal_id, "withdrawal_id"),
        seller["_id"],
    )
    account = await get_seller_account(db, seller["_id"])

    await log_audit(
        db,
        actor_id=seller["_id"],
        actor_role="seller",
        action="WITHDRAWAL_CANCELLED",
        metadata={"withdrawal_id": withdrawal["_id"], "amount": withdrawal["amount"]},
    )

    return {
        "message": "Withdrawal request cancelled successfully",
        "withdrawal": serialize_withdrawal(withdrawal),
        "available_commission": account["available_commission"],
    }
