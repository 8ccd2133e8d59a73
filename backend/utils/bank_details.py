import base64
import hashlib
from datetime import datetime

from cryptography.fernet import Fernet, InvalidToken
from fastapi import HTTPException

from config.env import BANK_DATA_ENCRYPTION_KEY, JWT_SECRET

# ==============================
# Seller payout profile storage
# ==============================
# Account numbers are stored Fernet-encrypted with a masked copy for
# display. Withdrawals snapshot this block at request time.


def _fernet() -> Fernet:
    seed = (BANK_DATA_ENCRYPTION_KEY or JWT_SECRET or "").strip()
    if not seed:
        raise HTTPException(status_code=500, detail="Bank data encryption key is not configured")
    key = base64.urlsafe_b64encode(hashlib.sha256(seed.encode("utf-8")).digest())
    return Fernet(key)


def mask_account_number(account_number: str) -> str:
    return "X" * max(len(account_number) - 4, 0) + account_number[-4:]


def build_bank_profile(
    *,
    account_holder_name: str,
    bank_account_number: str,
    ifsc_code: str,
    bank_name: str,
    upi_id: str | None = None,
) -> dict:
    encrypted = _fernet().encrypt(bank_account_number.encode("utf-8")).decode("utf-8")
    return {
        "account_holder_name": account_holder_name.strip(),
        "bank_account_encrypted": encrypted,
        "bank_account_masked": mask_account_number(bank_account_number),
        "ifsc_code": ifsc_code,
        "bank_name": bank_name.strip(),
        "upi_id": upi_id,
        "updated_at": datetime.utcnow(),
    }


def reveal_account_number(bank_details: dict) -> str:
    """Admin-only: plain account number for a manual bank transfer."""
    token = (bank_details or {}).get("bank_account_encrypted")
    if not token:
        raise HTTPException(status_code=400, detail="Bank account is missing for payout")
    try:
        return _fernet().decrypt(token.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        raise HTTPException(status_code=400, detail="Invalid encrypted bank account")
