from fastapi import APIRouter, Depends, Request, HTTPException
import hmac
import hashlib
import logging

from pydantic import ValidationError

from database import get_db
from config.env import ORDER_WEBHOOK_SECRET
from models.commission import OrderCompletedEvent
from utils.commission_ledger import record_commission
from utils.errors import LedgerError
from utils.guards import parse_object_id
from utils.idempotency import (
    reserve_order_event,
    complete_order_event,
    fail_order_event,
)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])
logger = logging.getLogger(__name__)


# =========================================================
# SIGNATURE VERIFICATION
# =========================================================

def verify_signature(raw_body: bytes, received_signature: str):
    if not ORDER_WEBHOOK_SECRET:
        raise HTTPException(500, "Webhook secret not configured")

    computed = hmac.new(
        ORDER_WEBHOOK_SECRET.encode(),
        raw_body,
        hashlib.sha256
    ).hexdigest()

    if not hmac.compare_digest(computed.encode(), received_signature.encode()):
        raise HTTPException(401, "Invalid webhook signature")


# =========================================================
# ORDER COMPLETED (COMMISSION EARNED)
# =========================================================

@router.post("/order-completed")
async def order_completed_webhook(request: Request, db=Depends(get_db)):
    """
    Order subsystem reports a completed order.

    Guarantees:
    - Signature verified
    - Amounts validated and converted to paise before the ledger
    - One earned commission entry per order, safe for retries
    """

    signature = request.headers.get("X-Order-Signature")
    if not signature:
        raise HTTPException(401, "Missing signature")

    raw_body = await request.body()
    verify_signature(raw_body, signature)

    try:
        event = OrderCompletedEvent.model_validate_json(raw_body)
    except ValidationError as e:
        raise HTTPException(422, e.errors(include_url=False, include_context=False))

    seller_id = parse_object_id(event.seller_id, "seller_id")
    order_id = parse_object_id(event.order_id, "order_id")

    # -----------------------------------------------------
    # IDEMPOTENCY GUARD
    # -----------------------------------------------------
    existing = await reserve_order_event(db=db, order_id=event.order_id)
    if existing:
        return existing

    already = await db.commission_history.find_one({"order_id": order_id, "type": "earned"})
    if already:
        response = {"ok": True, "duplicate": True, "entry_id": str(already["_id"])}
        await complete_order_event(db=db, order_id=event.order_id, response=response)
        return response

    # -----------------------------------------------------
    # RECORD COMMISSION
    # -----------------------------------------------------
    try:
        entry = await record_commission(
            db,
            seller_id=seller_id,
            order_id=order_id,
            order_amount=event.order_amount,
            commission_rate=event.commission_rate,
            order_details=event.order_details(),
        )
    except LedgerError as e:
        await fail_order_event(db=db, order_id=event.order_id, error=e.message)
        raise
    except Exception as e:
        logger.exception("ORDER_COMMISSION_ERROR order=%s", event.order_id)
        await fail_order_event(db=db, order_id=event.order_id, error=str(e))
        raise

    response = {
        "ok": True,
        "entry_id": str(entry["_id"]),
        "amount": entry["amount"],
        "status": entry["status"],
    }
    await complete_order_event(db=db, order_id=event.order_id, response=response)

    return response
