import pytest
from bson import ObjectId

from utils import reconciler
from utils.commission_ledger import confirm_commission, record_commission
from utils.errors import ReconciliationFailure
from utils.reconciler import compute_balance, recalculate_all, refresh
from utils.withdrawals import approve_withdrawal, request_withdrawal
from conftest import ledger_row


async def _cached(db, seller_id):
    seller = await db.users.find_one({"_id": seller_id})
    return seller["available_commission"]


class TestComputeBalance:
    async def test_confirmed_minus_completed_and_pending(self, db, make_seller):
        """₹300 + ₹500 confirmed, ₹200 completed and ₹100 pending leaves ₹500."""
        seller_id = await make_seller()
        await record_commission(db, seller_id=seller_id, amount=30000)
        await record_commission(db, seller_id=seller_id, amount=50000)
        done = await request_withdrawal(db, seller_id, 20000)
        await approve_withdrawal(db, done["_id"], ObjectId())
        await request_withdrawal(db, seller_id, 10000)

        balance = await compute_balance(db, seller_id)

        assert balance == {
            "available": 50000,
            "total_confirmed": 80000,
            "total_withdrawn": 20000,
            "total_pending_withdrawals": 10000,
        }

    async def test_ignores_pending_cancelled_and_refunded_entries(self, db, make_seller):
        seller_id = await make_seller()
        await record_commission(db, seller_id=seller_id, amount=10000, status="pending")
        await db.commission_history.insert_many([
            ledger_row(seller_id, 20000, status="cancelled"),
            ledger_row(seller_id, 40000, status="refunded"),
        ])

        assert (await compute_balance(db, seller_id))["available"] == 0

    async def test_confirmed_bonus_counts(self, db, make_seller):
        seller_id = await make_seller()
        await record_commission(db, seller_id=seller_id, amount=10000)
        await record_commission(db, seller_id=seller_id, entry_type="bonus", amount=2500, status="confirmed")
        await record_commission(db, seller_id=seller_id, entry_type="adjusted", amount=9000, status="confirmed")

        assert (await compute_balance(db, seller_id))["available"] == 12500

    async def test_floors_at_zero(self, db, make_seller):
        seller_id = await make_seller()
        await db.withdrawals.insert_one({"seller_id": seller_id, "amount": 5000, "status": "completed"})

        assert (await compute_balance(db, seller_id))["available"] == 0

    async def test_rejected_and_cancelled_withdrawals_ignored(self, db, make_seller):
        seller_id = await make_seller()
        await record_commission(db, seller_id=seller_id, amount=10000)
        await db.withdrawals.insert_many([
            {"seller_id": seller_id, "amount": 4000, "status": "rejected"},
            {"seller_id": seller_id, "amount": 3000, "status": "cancelled"},
        ])

        assert (await compute_balance(db, seller_id))["available"] == 10000


class TestRefresh:
    async def test_overwrites_drifted_cache(self, db, make_seller):
        seller_id = await make_seller()
        await record_commission(db, seller_id=seller_id, amount=30000)
        await db.users.update_one({"_id": seller_id}, {"$set": {"available_commission": 999999}})

        assert await refresh(db, seller_id) == 30000
        assert await _cached(db, seller_id) == 30000

    async def test_idempotent(self, db, make_seller):
        seller_id = await make_seller()
        await record_commission(db, seller_id=seller_id, amount=30000)

        first = await refresh(db, seller_id)
        second = await refresh(db, seller_id)

        assert first == second == await _cached(db, seller_id) == 30000

    async def test_confirm_after_pending(self, db, make_seller):
        seller_id = await make_seller()
        await record_commission(db, seller_id=seller_id, amount=50000)
        pending = await record_commission(db, seller_id=seller_id, amount=15000, status="pending")
        assert await _cached(db, seller_id) == 50000

        await confirm_commission(db, pending["_id"], ObjectId())

        assert await _cached(db, seller_id) == 65000

    async def test_failure_wraps_error_and_keeps_cache(self, db, make_seller, monkeypatch):
        seller_id = await make_seller(available_commission=1234)

        async def broken(*args, **kwargs):
            raise RuntimeError("write failed")

        monkeypatch.setattr(reconciler, "write_projection", broken)

        with pytest.raises(ReconciliationFailure) as exc:
            await refresh(db, seller_id)

        assert exc.value.seller_id == seller_id
        assert "write failed" in exc.value.details["reason"]
        assert await _cached(db, seller_id) == 1234

    async def test_failure_after_ledger_write_is_reported(self, db, make_seller, monkeypatch):
        seller_id = await make_seller()
        pending = await record_commission(db, seller_id=seller_id, amount=15000, status="pending")

        async def broken(*args, **kwargs):
            raise RuntimeError("aggregate failed")

        monkeypatch.setattr(reconciler, "compute_available", broken)

        with pytest.raises(ReconciliationFailure):
            await confirm_commission(db, pending["_id"], ObjectId())

        stored = await db.commission_history.find_one({"_id": pending["_id"]})
        assert stored["status"] == "confirmed"
        assert await db.seller_ledger_locks.count_documents({}) == 0

        monkeypatch.undo()
        await recalculate_all(db)
        assert await _cached(db, seller_id) == 15000


class TestLifetimeTotals:
    async def test_rebuilt_from_ledger(self, db, make_seller):
        """Lifetime totals count every credit entry, whatever its status."""
        seller_id = await make_seller()
        await db.commission_history.insert_many([
            ledger_row(seller_id, 30000),
            ledger_row(seller_id, 10000, status="refunded"),
            ledger_row(seller_id, 5000, status="pending", type="bonus"),
            ledger_row(seller_id, 2000, status="pending", type="deducted"),
        ])

        await refresh(db, seller_id)

        seller = await db.users.find_one({"_id": seller_id})
        assert seller["total_commission"] == 45000
        assert seller["total_orders"] == 2
        assert seller["available_commission"] == 30000

    async def test_failed_projection_write_is_repaired(self, db, make_seller, monkeypatch):
        seller_id = await make_seller()

        async def broken(*args, **kwargs):
            raise RuntimeError("projection write failed")

        monkeypatch.setattr(reconciler, "write_projection", broken)

        with pytest.raises(ReconciliationFailure):
            await record_commission(db, seller_id=seller_id, amount=30000)

        assert await db.commission_history.count_documents({"seller_id": seller_id}) == 1
        seller = await db.users.find_one({"_id": seller_id})
        assert seller["total_commission"] == 0

        monkeypatch.undo()
        report = await recalculate_all(db)

        seller = await db.users.find_one({"_id": seller_id})
        assert report["updated"] == 1
        assert seller["total_commission"] == 30000
        assert seller["total_orders"] == 1
        assert seller["available_commission"] == 30000


class TestRecalculateAll:
    async def test_fixes_drift_and_counts(self, db, make_seller):
        in_sync = await make_seller()
        drifted = await make_seller()
        await record_commission(db, seller_id=in_sync, amount=10000)
        await record_commission(db, seller_id=drifted, amount=20000)
        await db.users.update_one({"_id": drifted}, {"$set": {"available_commission": 0}})

        report = await recalculate_all(db)

        assert report == {"checked": 2, "updated": 1, "errors": []}
        assert await _cached(db, drifted) == 20000

    async def test_one_failing_seller_does_not_abort(self, db, make_seller, monkeypatch):
        healthy = await make_seller()
        broken_id = await make_seller()
        await record_commission(db, seller_id=healthy, amount=10000)
        await db.users.update_one({"_id": healthy}, {"$set": {"available_commission": 0}})

        original = reconciler.compute_available

        async def flaky(db_, seller_id):
            if seller_id == broken_id:
                raise RuntimeError("boom")
            return await original(db_, seller_id)

        monkeypatch.setattr(reconciler, "compute_available", flaky)

        report = await recalculate_all(db)

        assert report["checked"] == 2
        assert report["updated"] == 1
        assert len(report["errors"]) == 1
        assert report["errors"][0]["seller_id"] == str(broken_id)
        assert await _cached(db, healthy) == 10000

    async def test_non_sellers_skipped(self, db, make_seller, make_admin):
        await make_seller()
        await make_admin()

        report = await recalculate_all(db)

        assert report["checked"] == 1
