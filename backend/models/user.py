from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime


class BankDetailsUpdate(BaseModel):
    account_holder_name: str = Field(..., min_length=2, max_length=120)
    bank_account_number: str = Field(..., pattern=r"^\d{9,18}$")
    ifsc_code: str = Field(..., pattern=r"^[A-Z]{4}0[A-Z0-9]{6}$")
    bank_name: str = Field(..., min_length=2, max_length=120)
    upi_id: Optional[str] = Field(None, max_length=100)

    @field_validator("ifsc_code", mode="before")
    @classmethod
    def upper_ifsc(cls, value):
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("bank_account_number", mode="before")
    @classmethod
    def strip_account(cls, value):
        return value.replace(" ", "") if isinstance(value, str) else value


class SellerAccount(BaseModel):
    # cached projection on the seller document
    seller_id: str
    total_commission: int = 0
    total_orders: int = 0
    available_commission: int = 0
    reconciled_at: Optional[datetime] = None
