import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from uuid import uuid4

from pymongo.errors import DuplicateKeyError

from config.env import (
    LEDGER_LOCK_LEASE_SECONDS,
    LEDGER_LOCK_TIMEOUT_SECONDS,
    LEDGER_LOCK_POLL_SECONDS,
)
from utils.errors import LedgerBusy

logger = logging.getLogger(__name__)


async def acquire_seller_lock(
    *,
    db,
    seller_id,
    lease_seconds: int = LEDGER_LOCK_LEASE_SECONDS,
    timeout_seconds: float = LEDGER_LOCK_TIMEOUT_SECONDS,
    poll_seconds: float = LEDGER_LOCK_POLL_SECONDS,
) -> str:
    """
    Take the per-seller ledger lease.

    One document per seller in `seller_ledger_locks` (unique _id).
    An expired lease is taken over with a conditional update so a crashed
    holder cannot block the seller forever.
    Raises LedgerBusy once timeout_seconds have passed.
    """
    token = uuid4().hex
    deadline = time.monotonic() + timeout_seconds

    while True:
        now = datetime.utcnow()
        expires_at = now + timedelta(seconds=lease_seconds)

        try:
            await db.seller_ledger_locks.insert_one({
                "_id": seller_id,
                "token": token,
                "expires_at": expires_at,
                "created_at": now,
            })
            return token
        except DuplicateKeyError:
            stolen = await db.seller_ledger_locks.find_one_and_update(
                {"_id": seller_id, "expires_at": {"$lte": now}},
                {"$set": {"token": token, "expires_at": expires_at, "created_at": now}},
            )
            if stolen:
                logger.warning("LEDGER_LOCK_EXPIRED_TAKEOVER seller=%s", seller_id)
                return token

        if time.monotonic() >= deadline:
            logger.warning("LEDGER_LOCK_TIMEOUT seller=%s", seller_id)
            raise LedgerBusy(seller_id)

        await asyncio.sleep(poll_seconds)


async def renew_seller_lock(
    *,
    db,
    seller_id,
    token: str,
    lease_seconds: int = LEDGER_LOCK_LEASE_SECONDS,
):
    """
    Confirm the caller still holds the lease and extend it.
    Called right before a ledger commit; a holder whose lease expired and
    was taken over gets LedgerBusy instead of writing without exclusivity.
    """
    held = await db.seller_ledger_locks.find_one_and_update(
        {"_id": seller_id, "token": token},
        {"$set": {"expires_at": datetime.utcnow() + timedelta(seconds=lease_seconds)}},
    )
    if not held:
        logger.warning("LEDGER_LOCK_LOST seller=%s", seller_id)
        raise LedgerBusy(seller_id)


async def release_seller_lock(*, db, seller_id, token: str):
    await db.seller_ledger_locks.delete_one({"_id": seller_id, "token": token})


@asynccontextmanager
async def seller_ledger_lock(db, seller_id, **kwargs):
    """
    Serialise balance-mutating operations for one seller.
    Sellers never contend with each other.
    """
    token = await acquire_seller_lock(db=db, seller_id=seller_id, **kwargs)
    try:
        yield token
    finally:
        await release_seller_lock(db=db, seller_id=seller_id, token=token)
