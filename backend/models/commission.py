from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, Field, field_validator

from config.env import DEFAULT_COMMISSION_RATE
from utils.money import parse_rate, to_minor_units

# Rupee values arrive as numbers or numeric strings; stored as paise
Paise = Annotated[int, BeforeValidator(to_minor_units)]


class CommissionType(str, Enum):
    EARNED = "earned"
    BONUS = "bonus"
    DEDUCTED = "deducted"
    WITHDRAWN = "withdrawn"
    REFUNDED = "refunded"
    ADJUSTED = "adjusted"


class CommissionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# ======================================================
# ORDER COLLABORATOR
# ======================================================

class OrderItem(BaseModel):
    product_id: Optional[str] = None
    product_name: str = "Unknown Product"
    quantity: int = Field(1, ge=1)
    price: Paise = 0


class OrderCompletedEvent(BaseModel):
    seller_id: str
    order_id: str
    order_amount: Paise = Field(..., ge=0)
    commission_rate: Decimal = Field(default_factory=lambda: parse_rate(DEFAULT_COMMISSION_RATE))

    order_number: Optional[str] = None
    customer_name: Optional[str] = None
    items: List[OrderItem] = Field(default_factory=list)

    @field_validator("commission_rate", mode="before")
    @classmethod
    def strict_rate(cls, value):
        return parse_rate(value)

    def order_details(self) -> dict:
        return {
            "order_number": self.order_number or f"Order-{self.order_id}",
            "customer_name": self.customer_name or "Unknown Customer",
            "items": [item.model_dump() for item in self.items],
        }


# ======================================================
# ADMIN
# ======================================================

class AdminCommissionCreate(BaseModel):
    seller_id: str
    type: Literal["bonus", "adjusted", "deducted"]
    amount: Paise = Field(..., ge=0)
    description: Optional[str] = Field(None, max_length=300)
    notes: Optional[str] = Field(None, max_length=500)


class CommissionDecision(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)

