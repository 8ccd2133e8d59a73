import asyncio
from datetime import datetime, timedelta

import pytest
from bson import ObjectId

from utils.errors import LedgerBusy
from utils.seller_lock import (
    acquire_seller_lock,
    release_seller_lock,
    renew_seller_lock,
    seller_ledger_lock,
)


class TestSellerLedgerLock:
    async def test_acquire_and_release(self, db):
        seller_id = ObjectId()

        async with seller_ledger_lock(db, seller_id) as token:
            lock = await db.seller_ledger_locks.find_one({"_id": seller_id})
            assert lock["token"] == token

        assert await db.seller_ledger_locks.find_one({"_id": seller_id}) is None

    async def test_released_when_body_raises(self, db):
        seller_id = ObjectId()

        with pytest.raises(RuntimeError):
            async with seller_ledger_lock(db, seller_id):
                raise RuntimeError("ledger write failed")

        assert await db.seller_ledger_locks.count_documents({}) == 0

    async def test_busy_after_timeout(self, db):
        seller_id = ObjectId()
        await acquire_seller_lock(db=db, seller_id=seller_id)

        with pytest.raises(LedgerBusy) as exc:
            await acquire_seller_lock(db=db, seller_id=seller_id, timeout_seconds=0.05, poll_seconds=0.01)

        assert exc.value.status_code == 409
        assert exc.value.details["retryable"] is True

    async def test_expired_lease_is_taken_over(self, db):
        seller_id = ObjectId()
        await db.seller_ledger_locks.insert_one({
            "_id": seller_id,
            "token": "crashed-holder",
            "expires_at": datetime.utcnow() - timedelta(seconds=1),
            "created_at": datetime.utcnow() - timedelta(seconds=31),
        })

        token = await acquire_seller_lock(db=db, seller_id=seller_id, timeout_seconds=0.1)

        lock = await db.seller_ledger_locks.find_one({"_id": seller_id})
        assert lock["token"] == token != "crashed-holder"

    async def test_release_ignores_foreign_token(self, db):
        seller_id = ObjectId()
        token = await acquire_seller_lock(db=db, seller_id=seller_id)

        await release_seller_lock(db=db, seller_id=seller_id, token="someone-else")

        lock = await db.seller_ledger_locks.find_one({"_id": seller_id})
        assert lock["token"] == token

    async def test_different_sellers_do_not_contend(self, db):
        first, second = ObjectId(), ObjectId()

        async with seller_ledger_lock(db, first):
            async with seller_ledger_lock(db, second, timeout_seconds=0.05):
                assert await db.seller_ledger_locks.count_documents({}) == 2

    async def test_waiter_gets_lock_after_release(self, db):
        seller_id = ObjectId()
        order = []

        async def holder():
            async with seller_ledger_lock(db, seller_id):
                order.append("holder-in")
                await asyncio.sleep(0.03)
                order.append("holder-out")

        async def waiter():
            await asyncio.sleep(0.005)
            async with seller_ledger_lock(db, seller_id):
                order.append("waiter-in")

        await asyncio.gather(holder(), waiter())

        assert order == ["holder-in", "holder-out", "waiter-in"]

    async def test_renew_extends_own_lease(self, db):
        seller_id = ObjectId()
        token = await acquire_seller_lock(db=db, seller_id=seller_id, lease_seconds=1)
        before = (await db.seller_ledger_locks.find_one({"_id": seller_id}))["expires_at"]

        await renew_seller_lock(db=db, seller_id=seller_id, token=token, lease_seconds=60)

        after = (await db.seller_ledger_locks.find_one({"_id": seller_id}))["expires_at"]
        assert after > before + timedelta(seconds=30)

    async def test_renew_after_takeover_raises_busy(self, db):
        seller_id = ObjectId()
        token = await acquire_seller_lock(db=db, seller_id=seller_id)
        await db.seller_ledger_locks.update_one({"_id": seller_id}, {"$set": {"token": "new-holder"}})

        with pytest.raises(LedgerBusy):
            await renew_seller_lock(db=db, seller_id=seller_id, token=token)

        lock = await db.seller_ledger_locks.find_one({"_id": seller_id})
        assert lock["token"] == "new-holder"
