from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from models.commission import Paise


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class WithdrawalCreate(BaseModel):
    amount: Paise = Field(..., gt=0)
    seller_notes: Optional[str] = Field(None, max_length=500)


class WithdrawalDecision(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)


class WithdrawalRejection(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
