from datetime import datetime
from pymongo.errors import DuplicateKeyError

IDEMPOTENCY_TTL_SECONDS = 60 * 60 * 24 * 7   # 7 days; order events can be redelivered late
IN_PROGRESS_STALE_SECONDS = 60 * 2           # ledger writes are short

ORDER_COMPLETED_SCOPE = "order_completed_webhook"

IN_PROGRESS_RESPONSE = {
    "message": "Order event already in progress",
    "status": "processing",
}


def order_event_key(order_id: str) -> str:
    return f"order-completed:{order_id}"


async def reserve_order_event(*, db, order_id: str):
    """
    Reserve the idempotency slot for one order-completed event.

    Returns None when the caller owns the slot and should record the
    commission. Otherwise returns the response to replay: the stored
    response for a completed event, or an in-progress marker.
    Failed or stale reservations are expired and may be retried.
    """
    key = order_event_key(order_id)
    existing = await db.idempotency_keys.find_one({
        "key": key,
        "scope": ORDER_COMPLETED_SCOPE,
    })

    if existing:
        if existing.get("status") == "completed":
            return existing.get("response")

        created_at = existing.get("created_at")
        age_seconds = (
            (datetime.utcnow() - created_at).total_seconds()
            if created_at else 0
        )
        if existing.get("status") == "reserved" and age_seconds <= IN_PROGRESS_STALE_SECONDS:
            return IN_PROGRESS_RESPONSE

        await db.idempotency_keys.delete_one({"_id": existing["_id"]})

    try:
        await db.idempotency_keys.insert_one({
            "key": key,
            "scope": ORDER_COMPLETED_SCOPE,
            "status": "reserved",
            "response": None,
            "created_at": datetime.utcnow(),
        })
    except DuplicateKeyError:
        # A concurrent delivery won the race
        concurrent = await db.idempotency_keys.find_one({"key": key, "scope": ORDER_COMPLETED_SCOPE})
        if concurrent and concurrent.get("status") == "completed":
            return concurrent.get("response")
        return IN_PROGRESS_RESPONSE

    return None


async def complete_order_event(*, db, order_id: str, response: dict):
    await db.idempotency_keys.update_one(
        {"key": order_event_key(order_id), "scope": ORDER_COMPLETED_SCOPE},
        {
            "$set": {
                "status": "completed",
                "response": response,
                "completed_at": datetime.utcnow(),
            }
        },
    )


async def fail_order_event(*, db, order_id: str, error: str):
    """Failed events can be redelivered and retried."""
    await db.idempotency_keys.update_one(
        {"key": order_event_key(order_id), "scope": ORDER_COMPLETED_SCOPE},
        {
            "$set": {
                "status": "failed",
                "error": error,
                "failed_at": datetime.utcnow(),
            }
        },
    )
