from datetime import datetime

from utils.mongo import serialize_doc


async def log_audit(
    db,
    actor_id,
    actor_role: str,
    action: str,
    metadata: dict | None = None
):
    await db.audit_logs.insert_one({
        "actor_id": str(actor_id) if actor_id is not None else None,
        "actor_role": actor_role,
        "action": action,
        "metadata": serialize_doc(metadata or {}),
        "created_at": datetime.utcnow()
    })
