"""
Ledger / withdrawal error taxonomy.

Every error carries the HTTP status it maps to and a JSON-safe payload;
main.py turns them into responses with a single exception handler.
Business-rule errors are terminal for the request and never retried here.
"""


class LedgerError(Exception):
    status_code = 400
    code = "LEDGER_ERROR"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, **self.details}


class InvalidTransition(LedgerError):
    status_code = 409
    code = "INVALID_TRANSITION"

    def __init__(self, entity: str, entity_id, current: str, requested: str):
        super().__init__(
            f"Cannot move {entity} from '{current}' to '{requested}'",
            entity=entity,
            id=str(entity_id),
            current=current,
            requested=requested,
        )
        self.current = current
        self.requested = requested


class InsufficientBalance(LedgerError):
    code = "INSUFFICIENT_BALANCE"

    def __init__(self, available: int, requested: int):
        super().__init__(
            f"Insufficient available commission. Available: {available}, Requested: {requested}",
            available=available,
            requested=requested,
        )
        self.available = available
        self.requested = requested


class IncompletePayoutProfile(LedgerError):
    code = "INCOMPLETE_PAYOUT_PROFILE"

    def __init__(self, missing: list[str]):
        super().__init__(
            "Please complete your bank details before requesting withdrawal",
            missing=missing,
        )
        self.missing = missing


class InvalidAmount(LedgerError):
    code = "INVALID_AMOUNT"

    def __init__(self, value, reason: str = "Amount must be positive"):
        super().__init__(reason, value=str(value))


class InvalidEntry(LedgerError):
    code = "INVALID_ENTRY"

    def __init__(self, field: str, value, allowed):
        super().__init__(
            f"Invalid {field} '{value}'",
            field=field,
            value=str(value),
            allowed=list(allowed),
        )


class NotFound(LedgerError):
    status_code = 404
    code = "NOT_FOUND"
    entity = "record"

    def __init__(self, entity_id):
        super().__init__(f"{self.entity.capitalize()} not found", id=str(entity_id))


class CommissionNotFound(NotFound):
    entity = "commission record"


class WithdrawalNotFound(NotFound):
    entity = "withdrawal"


class SellerNotFound(NotFound):
    entity = "seller"


class LedgerBusy(LedgerError):
    status_code = 409
    code = "LEDGER_BUSY"

    def __init__(self, seller_id):
        super().__init__(
            "Another balance update is in progress for this seller, retry shortly",
            seller_id=str(seller_id),
            retryable=True,
        )


class ReconciliationFailure(LedgerError):
    status_code = 500
    code = "RECONCILIATION_FAILED"

    def __init__(self, seller_id, reason: str):
        super().__init__(
            "Balance recalculation failed; the change may have been saved. "
            "Run commission recalculation before retrying.",
            seller_id=str(seller_id),
            reason=reason,
        )
        self.seller_id = seller_id
