# backend/config/constants.py

# -----------------------------
# MONEY
# -----------------------------

MINOR_UNITS_PER_RUPEE = 100           # all amounts stored in paise
COMMISSION_ROUNDING_UNIT = 10 * MINOR_UNITS_PER_RUPEE   # earned commission rounds to nearest ₹10

# -----------------------------
# COMMISSION ENTRY TYPES
# -----------------------------

ENTRY_EARNED = "earned"
ENTRY_BONUS = "bonus"
ENTRY_DEDUCTED = "deducted"
ENTRY_WITHDRAWN = "withdrawn"
ENTRY_REFUNDED = "refunded"
ENTRY_ADJUSTED = "adjusted"

CREDIT_ENTRY_TYPES = (ENTRY_EARNED, ENTRY_BONUS)
DEBIT_ENTRY_TYPES = (ENTRY_DEDUCTED, ENTRY_WITHDRAWN)
ENTRY_TYPES = (
    ENTRY_EARNED,
    ENTRY_BONUS,
    ENTRY_DEDUCTED,
    ENTRY_WITHDRAWN,
    ENTRY_REFUNDED,
    ENTRY_ADJUSTED,
)

# -----------------------------
# COMMISSION STATUS MACHINE
# -----------------------------

COMMISSION_PENDING = "pending"
COMMISSION_CONFIRMED = "confirmed"
COMMISSION_CANCELLED = "cancelled"
COMMISSION_REFUNDED = "refunded"

# entries are born pending or confirmed; cancelled / refunded only via transitions
INITIAL_COMMISSION_STATUSES = (COMMISSION_PENDING, COMMISSION_CONFIRMED)

# -----------------------------
# WITHDRAWAL STATUS MACHINE
# -----------------------------

WITHDRAWAL_PENDING = "pending"
WITHDRAWAL_COMPLETED = "completed"
WITHDRAWAL_REJECTED = "rejected"
WITHDRAWAL_CANCELLED = "cancelled"

# -----------------------------
# PAGINATION
# -----------------------------

DEFAULT_PAGE_SIZE = 10
ADMIN_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
MONTHLY_ROLLUP_MONTHS = 12

# Seller payout profile fields required before a withdrawal
REQUIRED_BANK_FIELDS = (
    "account_holder_name",
    "bank_account_encrypted",
    "ifsc_code",
    "bank_name",
)
