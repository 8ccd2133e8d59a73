"""
Pytest fixtures for the commission ledger test suite.

Provides:
- an in-memory Motor database (mongomock-motor) per test
- seller / admin factories
- an httpx client bound to the FastAPI app with get_db overridden

Environment is set before any application module is imported because
config.env reads it at import time.
"""

import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("BANK_DATA_ENCRYPTION_KEY", "test-bank-key")
os.environ.setdefault("ORDER_WEBHOOK_SECRET", "test-order-secret")
os.environ.setdefault("LEDGER_LOCK_TIMEOUT_SECONDS", "2")
os.environ.setdefault("LEDGER_LOCK_POLL_SECONDS", "0.005")

from datetime import datetime

import pytest
from bson import ObjectId
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from database import get_db
from utils.bank_details import build_bank_profile
from utils.jwt import issue_service_token


@pytest.fixture
def db():
    client = AsyncMongoMockClient()
    return client["commission_ledger_test"]


@pytest.fixture
def make_seller(db):
    async def _make(with_bank: bool = True, **extra) -> ObjectId:
        seller_id = ObjectId()
        profile = {"brand_name": "Festive Decor"}
        if with_bank:
            profile["bank_details"] = build_bank_profile(
                account_holder_name="Asha Decorators",
                bank_account_number="123456789012",
                ifsc_code="HDFC0001234",
                bank_name="HDFC Bank",
            )

        await db.users.insert_one({
            "_id": seller_id,
            "role": "seller",
            "seller_profile": profile,
            "total_commission": 0,
            "total_orders": 0,
            "available_commission": 0,
            "created_at": datetime.utcnow(),
            **extra,
        })
        return seller_id

    return _make


@pytest.fixture
def make_admin(db):
    async def _make() -> ObjectId:
        admin_id = ObjectId()
        await db.users.insert_one({"_id": admin_id, "role": "admin"})
        return admin_id

    return _make


def auth_headers(user_id, role: str) -> dict:
    return {"Authorization": f"Bearer {issue_service_token(str(user_id), role)}"}


@pytest.fixture
async def client(db):
    from main import app

    app.dependency_overrides[get_db] = lambda: db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def ledger_row(seller_id, amount: int, *, status: str = "confirmed", type: str = "earned", created_at=None) -> dict:
    """A commission_history document written directly, bypassing the ledger API."""
    created_at = created_at or datetime.utcnow()
    return {
        "seller_id": seller_id,
        "order_id": ObjectId() if type == "earned" else None,
        "type": type,
        "amount": amount,
        "status": status,
        "created_at": created_at,
        "updated_at": created_at,
    }
