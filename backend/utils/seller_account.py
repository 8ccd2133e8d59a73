from datetime import datetime

from config.constants import REQUIRED_BANK_FIELDS
from utils.errors import SellerNotFound

# ==============================
# Seller account projection
# ==============================
# total_commission / total_orders / available_commission on the seller
# document are a cache derived from the ledger, written only by the
# reconciler.


async def get_seller(db, seller_id) -> dict:
    seller = await db.users.find_one({"_id": seller_id, "role": "seller"})
    if not seller:
        raise SellerNotFound(seller_id)
    return seller


async def write_projection(
    db,
    seller_id,
    *,
    available: int,
    total_commission: int,
    total_orders: int,
):
    """
    Single-document $set so the cached projection is either fully replaced
    or left as it was.
    """
    now = datetime.utcnow()
    result = await db.users.update_one(
        {"_id": seller_id, "role": "seller"},
        {
            "$set": {
                "available_commission": available,
                "total_commission": total_commission,
                "total_orders": total_orders,
                "ledger_reconciled_at": now,
            }
        },
    )
    if result.matched_count == 0:
        raise SellerNotFound(seller_id)


async def get_seller_account(db, seller_id) -> dict:
    seller = await db.users.find_one(
        {"_id": seller_id, "role": "seller"},
        {
            "total_commission": 1,
            "total_orders": 1,
            "available_commission": 1,
            "ledger_reconciled_at": 1,
        },
    )
    if not seller:
        raise SellerNotFound(seller_id)

    return {
        "seller_id": str(seller["_id"]),
        "total_commission": seller.get("total_commission", 0),
        "total_orders": seller.get("total_orders", 0),
        "available_commission": seller.get("available_commission", 0),
        "reconciled_at": seller.get("ledger_reconciled_at"),
    }


# ==============================
# Payout profile
# ==============================

def missing_bank_fields(seller: dict) -> list[str]:
    bank = (seller.get("seller_profile") or {}).get("bank_details") or {}
    return [field for field in REQUIRED_BANK_FIELDS if not bank.get(field)]


def snapshot_bank_details(seller: dict) -> dict:
    bank = (seller.get("seller_profile") or {}).get("bank_details") or {}
    return {
        "account_holder_name": bank.get("account_holder_name"),
        "bank_account_encrypted": bank.get("bank_account_encrypted"),
        "bank_account_masked": bank.get("bank_account_masked"),
        "ifsc_code": bank.get("ifsc_code"),
        "bank_name": bank.get("bank_name"),
        "upi_id": bank.get("upi_id"),
        "snapshot_at": datetime.utcnow(),
    }
