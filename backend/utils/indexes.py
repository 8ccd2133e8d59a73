from pymongo import ASCENDING, DESCENDING
from pymongo.errors import OperationFailure

from utils.idempotency import IDEMPOTENCY_TTL_SECONDS


def _normalize_key_pairs(keys):
    return [(k, v) for k, v in keys]


async def _create_index_safe(collection, keys, **kwargs):
    """
    Create index safely.
    If Mongo reports IndexOptionsConflict/IndexKeySpecsConflict for same key pattern,
    drop the conflicting index and recreate with desired options.
    """
    desired_key = _normalize_key_pairs(keys)
    desired_name = kwargs.get("name")
    try:
        await collection.create_index(keys, **kwargs)
        return
    except OperationFailure as e:
        if getattr(e, "code", None) not in {85, 86}:
            raise

        conflicting_names = []
        async for idx in collection.list_indexes():
            idx_key = _normalize_key_pairs(list(idx.get("key", {}).items()))
            if idx_key == desired_key:
                idx_name = idx.get("name")
                if idx_name and idx_name != desired_name:
                    conflicting_names.append(idx_name)

        for idx_name in conflicting_names:
            await collection.drop_index(idx_name)

        await collection.create_index(keys, **kwargs)


async def ensure_indexes(db):
    # Sellers
    await _create_index_safe(
        db.users,
        [("role", ASCENDING)],
        name="users_role_idx",
    )

    # Commission ledger
    await _create_index_safe(
        db.commission_history,
        [("seller_id", ASCENDING), ("created_at", DESCENDING)],
        name="commission_seller_created_at_idx",
    )
    await _create_index_safe(
        db.commission_history,
        [("seller_id", ASCENDING), ("type", ASCENDING), ("status", ASCENDING)],
        name="commission_seller_type_status_idx",
    )
    await _create_index_safe(
        db.commission_history,
        [("order_id", ASCENDING)],
        name="commission_order_earned_unique",
        unique=True,
        partialFilterExpression={"type": "earned", "order_id": {"$type": "objectId"}},
    )
    await _create_index_safe(
        db.commission_history,
        [("withdrawal_id", ASCENDING)],
        name="commission_withdrawal_idx",
        sparse=True,
    )

    # Withdrawals
    await _create_index_safe(
        db.withdrawals,
        [("status", ASCENDING), ("requested_at", DESCENDING)],
        name="withdrawals_status_requested_at_idx",
    )
    await _create_index_safe(
        db.withdrawals,
        [("seller_id", ASCENDING), ("status", ASCENDING), ("requested_at", DESCENDING)],
        name="withdrawals_seller_status_requested_at_idx",
    )

    # Per-seller ledger leases (expired leases are also taken over in code)
    await _create_index_safe(
        db.seller_ledger_locks,
        [("expires_at", ASCENDING)],
        name="seller_ledger_locks_ttl_idx",
        expireAfterSeconds=0,
    )

    # Idempotency
    await _create_index_safe(
        db.idempotency_keys,
        [("key", ASCENDING), ("scope", ASCENDING)],
        name="idempotency_key_scope_unique",
        unique=True,
    )
    await _create_index_safe(
        db.idempotency_keys,
        [("created_at", ASCENDING)],
        name="idempotency_ttl_idx",
        expireAfterSeconds=IDEMPOTENCY_TTL_SECONDS,
    )

    # Audit
    await _create_index_safe(
        db.audit_logs,
        [("created_at", ASCENDING)],
        name="audit_logs_created_at_idx",
    )
