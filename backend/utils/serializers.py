from datetime import datetime

from bson import ObjectId

from config.constants import DEBIT_ENTRY_TYPES
from utils.money import format_inr


def serialize_object_id(value):
    return str(value) if isinstance(value, ObjectId) else value


def serialize_datetime(value):
    return value.isoformat() if isinstance(value, datetime) else None


def paginate(page: int, limit: int, total: int) -> dict:
    return {
        "current_page": page,
        "total_pages": (total + limit - 1) // limit,
        "total_items": total,
        "items_per_page": limit,
    }


def serialize_commission_entry(entry: dict) -> dict:
    prefix = "-" if entry["type"] in DEBIT_ENTRY_TYPES else "+"

    return {
        "id": str(entry["_id"]),
        "seller_id": serialize_object_id(entry["seller_id"]),
        "order_id": serialize_object_id(entry.get("order_id")),
        "withdrawal_id": serialize_object_id(entry.get("withdrawal_id")),

        "type": entry["type"],
        "status": entry["status"],

        "amount": entry["amount"],
        "formatted_amount": prefix + format_inr(entry["amount"]),
        "commission_rate": entry.get("commission_rate"),
        "order_amount": entry.get("order_amount", 0),

        "description": entry.get("description"),
        "order_details": entry.get("order_details"),
        "processed_by": serialize_object_id(entry.get("processed_by")),
        "notes": entry.get("notes"),

        "created_at": serialize_datetime(entry.get("created_at")),
        "confirmed_at": serialize_datetime(entry.get("confirmed_at")),
        "cancelled_at": serialize_datetime(entry.get("cancelled_at")),
        "refunded_at": serialize_datetime(entry.get("refunded_at")),
    }


def serialize_withdrawal(withdrawal: dict, *, include_bank: bool = True) -> dict:
    row = {
        "id": str(withdrawal["_id"]),
        "seller_id": serialize_object_id(withdrawal["seller_id"]),
        "amount": withdrawal["amount"],
        "formatted_amount": format_inr(withdrawal["amount"]),
        "status": withdrawal["status"],

        "seller_notes": withdrawal.get("seller_notes"),
        "admin_notes": withdrawal.get("admin_notes"),
        "rejection_reason": withdrawal.get("rejection_reason"),
        "processed_by": serialize_object_id(withdrawal.get("processed_by")),

        "requested_at": serialize_datetime(withdrawal.get("requested_at")),
        "processed_at": serialize_datetime(withdrawal.get("processed_at")),
    }

    bank_details = withdrawal.get("bank_details")
    if include_bank and bank_details:
        # Never expose the encrypted account number
        row["bank_details"] = {
            "account_holder_name": bank_details.get("account_holder_name"),
            "bank_account_masked": bank_details.get("bank_account_masked"),
            "ifsc_code": bank_details.get("ifsc_code"),
            "bank_name": bank_details.get("bank_name"),
            "upi_id": bank_details.get("upi_id"),
        }

    return row
