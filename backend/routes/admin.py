from fastapi import APIRouter, Depends, Query
from typing import Optional

from database import get_db
from config.constants import ADMIN_PAGE_SIZE, MAX_PAGE_SIZE
from models.commission import (
    AdminCommissionCreate,
    CommissionDecision,
    CommissionStatus,
    CommissionType,
)
from models.withdrawal import WithdrawalDecision, WithdrawalRejection, WithdrawalStatus
from utils.audit import log_audit
from utils.bank_details import reveal_account_number
from utils.commission_ledger import (
    cancel_commission,
    confirm_commission,
    query_commissions,
    record_commission,
    refund_commission,
)
from utils.guards import parse_object_id, parse_optional_object_id
from utils.mongo import serialize_doc
from utils.reconciler import compute_balance, recalculate_all
from utils.security import require_role
from utils.seller_account import get_seller, get_seller_account
from utils.serializers import serialize_commission_entry, serialize_withdrawal
from utils.withdrawals import (
    approve_withdrawal,
    complete_withdrawal,
    get_withdrawal,
    list_withdrawals,
    reject_withdrawal,
)


router = APIRouter(prefix="/admin", tags=["Admin"])


# =====================================================
# COMMISSION LEDGER
# =====================================================

@router.get("/commissions")
async def all_commission_history(
    seller_id: Optional[str] = None,
    type: Optional[CommissionType] = None,
    status: Optional[CommissionStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(ADMIN_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    result = await query_commissions(
        db,
        seller_id=parse_optional_object_id(seller_id, "seller_id"),
        entry_type=type.value if type else None,
        status=status.value if status else None,
        page=page,
        limit=limit,
    )

    return {
        "commission_history": [serialize_commission_entry(e) for e in result["items"]],
        "pagination": result["pagination"],
    }


@router.post("/commissions")
async def create_manual_commission(
    data: AdminCommissionCreate,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    entry = await record_commission(
        db,
        seller_id=parse_object_id(data.seller_id, "seller_id"),
        entry_type=data.type,
        amount=data.amount,
        description=data.description,
        notes=data.notes,
        processed_by=admin["_id"],
    )

    await log_audit(
        db,
        actor_id=admin["_id"],
        actor_role="admin",
        action="COMMISSION_ENTRY_CREATED",
        metadata={
            "entry_id": entry["_id"],
            "seller_id": entry["seller_id"],
            "type": entry["type"],
            "amount": entry["amount"],
        },
    )

    return {
        "message": "Commission entry created",
        "commission": serialize_commission_entry(entry),
    }


@router.patch("/commissions/{entry_id}/confirm")
async def admin_confirm_commission(
    entry_id: str,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    entry = await confirm_commission(db, parse_object_id(entry_id, "commission_id"), admin["_id"])

    await log_audit(
        db,
        actor_id=admin["_id"],
        actor_role="admin",
        action="COMMISSION_CONFIRMED",
        metadata={"entry_id": entry_id, "seller_id": entry["seller_id"], "amount": entry["amount"]},
    )

    return {
        "message": "Commission confirmed successfully",
        "commission": serialize_commission_entry(entry),
    }


@router.patch("/commissions/{entry_id}/cancel")
async def admin_cancel_commission(
    entry_id: str,
    data: Optional[CommissionDecision] = None,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    reason = data.reason if data else None
    entry = await cancel_commission(db, parse_object_id(entry_id, "commission_id"), admin["_id"], reason)

    await log_audit(
        db,
        actor_id=admin["_id"],
        actor_role="admin",
        action="COMMISSION_CANCELLED",
        metadata={"entry_id": entry_id, "seller_id": entry["seller_id"], "reason": reason},
    )

    return {
        "message": "Commission cancelled successfully",
        "commission": serialize_commission_entry(entry),
    }


@router.patch("/commissions/{entry_id}/refund")
async def admin_refund_commission(
    entry_id: str,
    data: Optional[CommissionDecision] = None,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    reason = data.reason if data else None
    entry = await refund_commission(db, parse_object_id(entry_id, "commission_id"), admin["_id"], reason)

    await log_audit(
        db,
        actor_id=admin["_id"],
        actor_role="admin",
        action="COMMISSION_REFUNDED",
        metadata={"entry_id": entry_id, "seller_id": entry["seller_id"], "reason": reason},
    )

    return {
        "message": "Commission refunded successfully",
        "commission": serialize_commission_entry(entry),
    }


@router.post("/commissions/recalculate")
async def recalculate_sellers_commission(
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    report = await recalculate_all(db)

    await log_audit(
        db,
        actor_id=admin["_id"],
        actor_role="admin",
        action="COMMISSION_RECALCULATED",
        metadata={
            "checked": report["checked"],
            "updated": report["updated"],
            "errors": len(report["errors"]),
        },
    )

    return {
        "message": f"Recalculated commission for {report['updated']} sellers",
        **report,
    }


@router.get("/sellers/{seller_id}/balance")
async def seller_balance_check(
    seller_id: str,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    oid = parse_object_id(seller_id, "seller_id")

    account = await get_seller_account(db, oid)
    balance = await compute_balance(db, oid)

    return {
        "account": serialize_doc(account),
        "computed": balance,
        "in_sync": account["available_commission"] == balance["available"],
    }


# =====================================================
# WITHDRAWALS
# =====================================================

@router.get("/withdrawals")
async def all_withdrawals(
    status: Optional[WithdrawalStatus] = None,
    seller_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(ADMIN_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    result = await list_withdrawals(
        db,
        seller_id=parse_optional_object_id(seller_id, "seller_id"),
        status=status.value if status else None,
        page=page,
        limit=limit,
    )

    return {
        "withdrawals": [serialize_withdrawal(w) for w in result["items"]],
        "pagination": result["pagination"],
    }


@router.get("/withdrawals/by-seller/{seller_id}")
async def withdrawals_by_seller(
    seller_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(ADMIN_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    oid = parse_object_id(seller_id, "seller_id")
    await get_seller(db, oid)

    result = await list_withdrawals(db, seller_id=oid, page=page, limit=limit)

    return {
        "seller_id": seller_id,
        "withdrawals": [serialize_withdrawal(w) for w in result["items"]],
        "pagination": result["pagination"],
    }


@router.get("/withdrawals/{withdrawal_id}/payout-details")
async def withdrawal_payout_details(
    withdrawal_id: str,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    withdrawal = await get_withdrawal(db, parse_object_id(withdrawal_id, "withdrawal_id"))
    bank = withdrawal.get("bank_details") or {}

    await log_audit(
        db,
        actor_id=admin["_id"],
        actor_role="admin",
        action="WITHDRAWAL_BANK_DETAILS_VIEWED",
        metadata={"withdrawal_id": withdrawal_id},
    )

    return {
        "withdrawal": serialize_withdrawal(withdrawal),
        "account_number": reveal_account_number(bank),
    }


@router.patch("/withdrawals/{withdrawal_id}/approve")
async def admin_approve_withdrawal(
    withdrawal_id: str,
    data: Optional[WithdrawalDecision] = None,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    withdrawal = await approve_withdrawal(
        db,
        parse_object_id(withdrawal_id, "withdrawal_id"),
        admin["_id"],
        data.notes if data else None,
    )
    account = await get_seller_account(db, withdrawal["seller_id"])

    await log_audit(
        db,
        actor_id=admin["_id"],
        actor_role="admin",
        action="WITHDRAWAL_APPROVED",
        metadata={
            "withdrawal_id": withdrawal_id,
            "seller_id": withdrawal["seller_id"],
            "amount": withdrawal["amount"],
        },
    )

    return {
        "message": "Withdrawal approved successfully. Amount will be credited in 3-5 business days.",
        "withdrawal": serialize_withdrawal(withdrawal),
        "available_commission": account["available_commission"],
    }


@router.patch("/withdrawals/{withdrawal_id}/reject")
async def admin_reject_withdrawal(
    withdrawal_id: str,
    data: WithdrawalRejection,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    withdrawal = await reject_withdrawal(
        db,
        parse_object_id(withdrawal_id, "withdrawal_id"),
        admin["_id"],
        data.reason,
    )
    account = await get_seller_account(db, withdrawal["seller_id"])

    await log_audit(
        db,
        actor_id=admin["_id"],
        actor_role="admin",
        action="WITHDRAWAL_REJECTED",
        metadata={
            "withdrawal_id": withdrawal_id,
            "seller_id": withdrawal["seller_id"],
            "reason": data.reason,
        },
    )

    return {
        "message": "Withdrawal rejected successfully",
        "withdrawal": serialize_withdrawal(withdrawal),
        "available_commission": account["available_commission"],
    }


@router.patch("/withdrawals/{withdrawal_id}/complete")
async def admin_complete_withdrawal(
    withdrawal_id: str,
    data: Optional[WithdrawalDecision] = None,
    admin=Depends(require_role("admin")),
    db=Depends(get_db),
):
    withdrawal = await complete_withdrawal(
        db,
        parse_object_id(withdrawal_id, "withdrawal_id"),
        admin["_id"],
        data.notes if data else None,
    )
    account = await get_seller_account(db, withdrawal["seller_id"])

    await log_audit(
        db,
        actor_id=admin["_id"],
        actor_role="admin",
        action="WITHDRAWAL_COMPLETED",
        metadata={
            "withdrawal_id": withdrawal_id,
            "seller_id": withdrawal["seller_id"],
            "amount": withdrawal["amount"],
        },
    )

    return {
        "message": "Withdrawal marked as completed",
        "withdrawal": serialize_withdrawal(withdrawal),
        "available_commission": account["available_commission"],
    }
